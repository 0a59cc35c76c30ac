from buildpay.money import round_currency, sum_currency


def test_round_currency_rounds_half_up():
    assert round_currency(0.125) == 0.13
    assert round_currency(2.675) == 2.68
    assert round_currency(-1.005) == -1.01


def test_sum_currency_avoids_float_drift():
    assert sum_currency([0.1, 0.1, 0.1]) == 0.3
    assert sum_currency([]) == 0.0
