import pytest

from vault_arb.market_data import MarketDataFetcher, TransientQueryError
from vault_arb.profit_calculator import ProfitEvaluator

from conftest import BASE_TOKEN, X_TOKEN, FakeChainClient, make_settings, market_payloads


def build(settings, swap_returns, payloads=None, **kwargs):
    client = FakeChainClient(payloads=payloads, swap_returns=swap_returns)
    fetcher = MarketDataFetcher(client, settings)
    evaluator = ProfitEvaluator(fetcher, settings, **kwargs)
    return client, evaluator, fetcher.fetch_snapshot()


def test_trade_sizing_scenario(settings):
    _, evaluator, snapshot = build(settings, {})
    # min(5% of 1_000_000, floor(10_000 * 0.98 / 1.0 * 1e6))
    assert evaluator.size_trade(snapshot) == 50_000


def test_borrow_cap_can_bind(tmp_path):
    settings = make_settings(tmp_path, decimals=0)
    _, evaluator, snapshot = build(settings, {}, payloads=market_payloads(max_borrow_value=25_000))
    assert evaluator.size_trade(snapshot) == 24_500


def test_mint_first_wins(settings):
    client, evaluator, snapshot = build(
        settings, {BASE_TOKEN.address: 52_000, X_TOKEN.address: 60_000}
    )
    evaluation = evaluator.evaluate(snapshot)

    swap = evaluation.swap_first
    assert swap.second_action_input == pytest.approx(51_999.48)
    assert swap.result == 49_919
    assert swap.profit == pytest.approx(-0.000081)

    mint = evaluation.mint_first
    assert mint.trade_amount == 50_000
    assert mint.second_action_input == pytest.approx(50_000 * 500_000 / 480_000)
    assert mint.result == pytest.approx(59_999.4)
    assert mint.profit == pytest.approx(0.0099994)

    assert evaluation.chosen is mint
    assert evaluation.failed_simulations == 0
    # batch + one simulation per ordering
    assert len(client.queries) - 1 == 2


def test_below_threshold_is_not_executable(settings):
    _, evaluator, snapshot = build(
        settings, {BASE_TOKEN.address: 52_000, X_TOKEN.address: 60_000}
    )
    assert not evaluator.is_executable(evaluator.evaluate(snapshot).chosen)


def test_above_threshold_is_executable(tmp_path):
    settings = make_settings(tmp_path, minimum_profit=0.005)
    _, evaluator, snapshot = build(
        settings, {BASE_TOKEN.address: 52_000, X_TOKEN.address: 60_000}
    )
    assert evaluator.is_executable(evaluator.evaluate(snapshot).chosen)


def test_swap_first_wins(settings):
    _, evaluator, snapshot = build(
        settings, {BASE_TOKEN.address: 60_000, X_TOKEN.address: 40_000}
    )
    evaluation = evaluator.evaluate(snapshot)
    assert evaluation.chosen.swap_first
    assert evaluation.chosen.result == 57_599
    assert evaluation.chosen.profit == pytest.approx(0.007599)


def test_tie_goes_to_mint_first_and_missing_returns_count(settings):
    _, evaluator, snapshot = build(settings, {})
    evaluation = evaluator.evaluate(snapshot)

    assert evaluation.swap_first.profit == evaluation.mint_first.profit
    assert not evaluation.chosen.swap_first
    assert evaluation.failed_simulations == 2


def test_mint_first_clamps_to_supply_cap(settings):
    _, evaluator, snapshot = build(
        settings, {BASE_TOKEN.address: 1, X_TOKEN.address: 1},
        payloads=market_payloads(max_supply=500_000),
    )
    mint = evaluator.evaluate(snapshot).mint_first
    assert snapshot.supply_cap == 20_000
    assert mint.trade_amount == 20_000
    assert mint.second_action_input == pytest.approx(20_000 * 500_000 / 480_000)


def test_exhausted_supply_cap_is_never_executable(tmp_path):
    settings = make_settings(tmp_path, minimum_profit=-1.0)
    client, evaluator, snapshot = build(
        settings, {BASE_TOKEN.address: 1},
        payloads=market_payloads(max_supply=400_000),
    )
    evaluation = evaluator.evaluate(snapshot)
    mint = evaluation.mint_first

    assert mint.trade_amount == 0
    assert mint.second_action_input == 0
    assert not evaluator.is_executable(mint)
    # no simulation is issued for an empty offer
    offered = [q[2]["swap_simulation"]["offer"]["token"]["custom_token"]["contract_addr"]
               for q in client.queries if "swap_simulation" in q[2]]
    assert offered == [BASE_TOKEN.address]


def test_slippage_factor_does_not_flip_clear_winner(settings):
    returns = {BASE_TOKEN.address: 52_000, X_TOKEN.address: 60_000}
    _, with_factor, snapshot = build(settings, returns)
    _, without_factor, _ = build(settings, returns, slippage_factor=1.0)

    assert (with_factor.evaluate(snapshot).chosen.swap_first
            == without_factor.evaluate(snapshot).chosen.swap_first)


def test_wallet_variant_sizing_and_raw_profit(wallet_settings):
    _, evaluator, snapshot = build(
        wallet_settings, {BASE_TOKEN.address: 1, X_TOKEN.address: 12_000},
        payloads=market_payloads(wallet_amount=20_000),
    )
    assert evaluator.size_trade(snapshot) == 10_000

    chosen = evaluator.evaluate(snapshot).chosen
    assert not chosen.swap_first
    assert chosen.profit == pytest.approx(12_000 * 0.99999 - 10_000)
    assert evaluator.is_executable(chosen)


def test_wallet_balance_limits_trade(wallet_settings):
    _, evaluator, snapshot = build(
        wallet_settings, {}, payloads=market_payloads(wallet_amount=5_000)
    )
    assert evaluator.size_trade(snapshot) == 5_000


def test_simulation_transport_error_propagates_as_transient(settings):
    client = FakeChainClient(swap_error=RuntimeError("invalid json response"))
    fetcher = MarketDataFetcher(client, settings)
    snapshot = fetcher.fetch_snapshot()
    with pytest.raises(TransientQueryError):
        ProfitEvaluator(fetcher, settings).evaluate(snapshot)


def test_transient_error_carries_earlier_failed_simulations(settings):
    client, evaluator, snapshot = build(
        settings, {X_TOKEN.address: RuntimeError("invalid json response")}
    )
    with pytest.raises(TransientQueryError) as exc:
        evaluator.evaluate(snapshot)
    assert exc.value.failed_simulations == 1
