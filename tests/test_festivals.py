from datetime import timedelta

from uposatha.festivals import all_festivals, check_festival, upcoming_festivals

from conftest import EPOCH, FakeOracle, regular_tithi

VESAK_DAY = EPOCH + timedelta(days=14)
MAGHA_DAY = EPOCH + timedelta(days=44)


def festival_oracle():
    return FakeOracle(default=regular_tithi, masas={VESAK_DAY: "Vaisakha", MAGHA_DAY: "Magha"})


def test_vesak_on_vaisakha_purnima(observer):
    fest = check_festival(VESAK_DAY, observer, festival_oracle())
    assert fest.key == "vesak"


def test_not_a_festival_off_purnima(observer):
    assert check_festival(VESAK_DAY - timedelta(days=1), observer, festival_oracle()) is None


def test_purnima_of_other_month(observer):
    oracle = FakeOracle(default=regular_tithi, masas={VESAK_DAY: "Kartika"})
    assert check_festival(VESAK_DAY, observer, oracle) is None


def test_tradition_filter(observer):
    assert check_festival(MAGHA_DAY, observer, festival_oracle(), tradition="Thai").key == "magha_puja"
    assert check_festival(MAGHA_DAY, observer, festival_oracle(), tradition="Mahayana") is None


def test_upcoming_festivals_skips_ahead_after_purnima(observer):
    oracle = festival_oracle()
    matches = upcoming_festivals(EPOCH, observer, oracle, days=60)
    assert [(m.festival.key, m.date, m.days_remaining) for m in matches] == [
        ("vesak", VESAK_DAY, 14),
        ("magha_puja", MAGHA_DAY, 44),
    ]
    assert VESAK_DAY + timedelta(days=1) not in oracle.calls


def test_definitions_are_all_purnima():
    assert {f.key for f in all_festivals()} == {"vesak", "magha_puja", "asalha_puja"}
    assert all(f.tithi_index == 14 for f in all_festivals())
