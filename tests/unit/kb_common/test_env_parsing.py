import pytest

from kb_common.config.env import parse_bool_env, parse_csv

pytestmark = pytest.mark.unit_common


@pytest.mark.parametrize(
    "raw, expected",
    [(None, None), ("1", True), ("TRUE", True), (" yes ", True), ("on", True), ("0", False), ("nope", False)],
)
def test_parse_bool_env(raw, expected):
    assert parse_bool_env(raw) is expected


def test_parse_csv_drops_blanks():
    assert parse_csv("TLSv1.2, ,TLSv1.3,") == ["TLSv1.2", "TLSv1.3"]
    assert parse_csv("") == []
    assert parse_csv(None) == []
