import logging

import pytest
import yaml

from waydisplays.cfg_yaml import (
    CfgParseError,
    cfg_from_lenient,
    cfg_from_validated,
    cfg_to_dict,
    marshal_cfg,
    unmarshal_cfg_from_file,
    validate_regex,
)
from waydisplays.mode import hz_str_to_mhz
from waydisplays.models import (
    ARRANGE_DEFAULT,
    Align,
    Arrange,
    Cfg,
    CfgElement,
    LogThreshold,
    OnOff,
    Transform,
    UserMode,
    UserScale,
    UserTransform,
)


def _full_cfg() -> Cfg:
    return Cfg(
        laptop_display_prefix="eDP",
        order_name_desc=["DP-1", "!HDMI-.*"],
        arrange=Arrange.COL,
        align=Align.MIDDLE,
        scaling=OnOff.OFF,
        auto_scale=OnOff.ON,
        user_scales=[UserScale("eDP-1", 1.5)],
        user_modes=[
            UserMode("HDMI-A-1", width=1920, height=1080, refresh_mhz=60000),
            UserMode("DP-3", width=2560, height=1440, refresh_mhz=59940),
            UserMode("DP-1", max=True),
            UserMode("DP-4", width=1280, height=720),
        ],
        adaptive_sync_off_name_desc=["DP-2"],
        disabled_name_desc=["HDMI-A-2"],
        user_transforms=[UserTransform("DP-2", Transform.FLIPPED_90)],
        log_threshold=LogThreshold.ERROR,
        auto_scale_min=1.25,
        auto_scale_max=3.0,
    )


def test_validate_regex_plain_pattern_never_checked():
    assert validate_regex("(", CfgElement.ORDER) is True


def test_validate_regex_good_pattern():
    assert validate_regex("!HDMI-.*", CfgElement.ORDER) is True


def test_validate_regex_bad_pattern_warns(caplog):
    with caplog.at_level(logging.WARNING):
        assert validate_regex("!(", CfgElement.ORDER) is False
    assert "Ignoring bad ORDER regex" in caplog.text


def test_marshal_empty_cfg():
    assert marshal_cfg(Cfg()) == "{}\n"


def test_marshal_upper_case_booleans():
    text = marshal_cfg(Cfg(scaling=OnOff.ON, auto_scale=OnOff.OFF))
    assert "SCALING: TRUE" in text
    assert "AUTO_SCALE: FALSE" in text
    assert text.endswith("\n")


def test_marshal_round_trip_validated():
    original = _full_cfg()
    data = yaml.safe_load(marshal_cfg(original))
    assert cfg_from_validated(data) == original


def test_marshal_round_trip_lenient():
    original = _full_cfg()
    data = yaml.safe_load(marshal_cfg(original))
    assert cfg_from_lenient(data) == original


def test_cfg_to_dict_max_mode_omits_resolution():
    data = cfg_to_dict(Cfg(user_modes=[UserMode("DP-1", max=True, width=1920, height=1080)]))
    assert data["MODE"] == [{"NAME_DESC": "DP-1", "MAX": True}]


def test_cfg_to_dict_mode_without_refresh_omits_hz():
    data = cfg_to_dict(Cfg(user_modes=[UserMode("DP-1", width=1920, height=1080)]))
    assert data["MODE"] == [{"NAME_DESC": "DP-1", "WIDTH": 1920, "HEIGHT": 1080}]


def test_cfg_to_dict_skips_normal_transforms():
    data = cfg_to_dict(Cfg(user_transforms=[UserTransform("DP-1", Transform.NORMAL)]))
    assert "TRANSFORM" not in data


def test_cfg_to_dict_skips_unset_elements():
    assert cfg_to_dict(Cfg(auto_scale_min=0.0, arrange=Arrange.ROW)) == {"ARRANGE": "ROW"}


@pytest.mark.parametrize("data", [None, "ARRANGE", ["ORDER"]])
def test_validated_requires_map(data):
    with pytest.raises(CfgParseError):
        cfg_from_validated(data)


def test_validated_order_dedupes_and_drops_bad_regex():
    cfg = cfg_from_validated({"ORDER": ["DP-1", "DP-1", "!(", "!DP-.*"]})
    assert cfg.order_name_desc == ["DP-1", "!DP-.*"]


def test_validated_order_map_raises():
    with pytest.raises(CfgParseError):
        cfg_from_validated({"ORDER": {"a": "b"}})


def test_validated_invalid_arrange_uses_default(caplog):
    with caplog.at_level(logging.WARNING):
        cfg = cfg_from_validated({"ARRANGE": "diagonal", "ALIGN": "bot"})
    assert cfg.arrange is ARRANGE_DEFAULT
    assert cfg.align is Align.BOTTOM
    assert "Ignoring invalid ARRANGE" in caplog.text


def test_validated_invalid_log_threshold_unset():
    cfg = cfg_from_validated({"LOG_THRESHOLD": "LOUD"}, Cfg(log_threshold=LogThreshold.DEBUG))
    assert cfg.log_threshold is None


def test_validated_invalid_scaling_left_alone():
    cfg = cfg_from_validated({"SCALING": "maybe", "AUTO_SCALE": "no"},
                             Cfg(scaling=OnOff.ON))
    assert cfg.scaling is OnOff.ON
    assert cfg.auto_scale is OnOff.OFF


def test_validated_scale_replaced_by_name():
    cfg = cfg_from_validated({"SCALE": [
        {"NAME_DESC": "A", "SCALE": 2},
        {"NAME_DESC": "B", "SCALE": 1.5},
        {"NAME_DESC": "A", "SCALE": 3},
        {"NAME_DESC": "C"},
        {"SCALE": 4},
        {"NAME_DESC": "D", "SCALE": "big"},
    ]})
    assert cfg.user_scales == [UserScale("B", 1.5), UserScale("A", 3.0)]


def test_validated_mode_hz_converted():
    cfg = cfg_from_validated({"MODE": [
        {"NAME_DESC": "DP-1", "WIDTH": 1920, "HEIGHT": 1080, "HZ": 59.94},
    ]})
    assert cfg.user_modes == [UserMode("DP-1", width=1920, height=1080,
                                       refresh_mhz=hz_str_to_mhz("59.94"))]


def test_validated_mode_with_invalid_value_skipped():
    cfg = cfg_from_validated({"MODE": [
        {"NAME_DESC": "DP-1", "WIDTH": "wide", "HEIGHT": 1080},
        {"NAME_DESC": "DP-2", "MAX": "sometimes"},
        {"NAME_DESC": "DP-3", "HZ": "fast"},
        {"NAME_DESC": "DP-4", "MAX": True},
    ]})
    assert cfg.user_modes == [UserMode("DP-4", max=True)]


def test_validated_invalid_transform_skipped():
    cfg = cfg_from_validated({"TRANSFORM": [
        {"NAME_DESC": "DP-1", "TRANSFORM": "sideways"},
        {"NAME_DESC": "DP-2", "TRANSFORM": "270"},
    ]})
    assert cfg.user_transforms == [UserTransform("DP-2", Transform.ROTATE_270)]


def test_validated_merges_into_existing():
    existing = Cfg(arrange=Arrange.COL, disabled_name_desc=["X"])
    result = cfg_from_validated({"ALIGN": "LEFT", "DISABLED": ["X", "Y"]}, existing)
    assert result is existing
    assert result.arrange is Arrange.COL
    assert result.align is Align.LEFT
    assert result.disabled_name_desc == ["X", "Y"]


def test_validated_lists_without_dedupe_for_vrr_and_max_refresh():
    cfg = cfg_from_validated({"VRR_OFF": ["A", "A"], "MAX_PREFERRED_REFRESH": ["B", "!("]})
    assert cfg.adaptive_sync_off_name_desc == ["A"]
    assert cfg.max_preferred_refresh_name_desc == ["B"]


def test_lenient_non_map_is_none():
    assert cfg_from_lenient(["ARRANGE"]) is None
    assert cfg_from_lenient(None) is None


def test_lenient_keeps_invalid_as_unset():
    cfg = cfg_from_lenient({"ARRANGE": "diagonal", "SCALING": "maybe", "ORDER": ["A", "A"]})
    assert cfg.arrange is None
    assert cfg.scaling is None
    assert cfg.order_name_desc == ["A", "A"]


def test_lenient_ignores_max_preferred_refresh():
    cfg = cfg_from_lenient({"MAX_PREFERRED_REFRESH": ["DP-1"]})
    assert cfg.max_preferred_refresh_name_desc == []


def test_lenient_mode_non_map_appended_as_default():
    cfg = cfg_from_lenient({"MODE": ["junk"]})
    assert cfg.user_modes == [UserMode.default()]


def test_lenient_transform_invalid_dropped():
    cfg = cfg_from_lenient({"TRANSFORM": [
        {"NAME_DESC": "DP-1", "TRANSFORM": "sideways"},
        {"NAME_DESC": "DP-2", "TRANSFORM": "flipped"},
    ]})
    assert cfg.user_transforms == [UserTransform("DP-2", Transform.FLIPPED)]


def test_unmarshal_from_file(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("ARRANGE: COLUMN\nORDER:\n  - DP-1\n  - DP-2\n", encoding="utf-8")
    cfg = Cfg(file_path=str(path))
    result = unmarshal_cfg_from_file(cfg)
    assert result is cfg
    assert cfg.arrange is Arrange.COL
    assert cfg.order_name_desc == ["DP-1", "DP-2"]


def test_unmarshal_from_file_round_trip(tmp_path):
    original = _full_cfg()
    path = tmp_path / "cfg.yaml"
    path.write_text(marshal_cfg(original), encoding="utf-8")
    assert unmarshal_cfg_from_file(Cfg(file_path=str(path))) == original


def test_unmarshal_from_missing_file(tmp_path):
    with pytest.raises(CfgParseError):
        unmarshal_cfg_from_file(Cfg(file_path=str(tmp_path / "absent.yaml")))


def test_unmarshal_from_empty_file(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("", encoding="utf-8")
    with pytest.raises(CfgParseError):
        unmarshal_cfg_from_file(Cfg(file_path=str(path)))


def test_unmarshal_without_path():
    with pytest.raises(CfgParseError):
        unmarshal_cfg_from_file(Cfg())