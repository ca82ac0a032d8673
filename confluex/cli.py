"""
Confluex CLI

Command-line interface for signal evaluation and risk simulation.

Usage:
    python -m confluex.cli --input BTCUSDT_1h.csv --symbol BTCUSDT --timeframe 1h --risk
"""

import argparse
import sys
import logging
from pathlib import Path
import json

import pandas as pd

from confluex.exceptions import InsufficientDataException, InvalidParametersException
from confluex.indicator_engine.candles import CandleSeries
from confluex.risk_engine.config import MonteCarloConfig
from confluex.risk_engine.monte_carlo import MonteCarloRiskSimulator
from confluex.risk_engine.volatility import VolatilityEstimator
from confluex.signal_engine.batch_runner import EvaluationRequest, EvaluationStatus, SignalBatchRunner
from confluex.signal_engine.config import SignalEngineConfig
from confluex.signal_engine.engine import SignalGenerationEngine
from confluex.signal_engine.schemas import Signal
from confluex.timeframes import TIMEFRAME_ORDER

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
LOG = logging.getLogger(__name__)

VOLATILITY_METHODS = ["atr", "returns", "implied"]


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Confluex Signal Confidence & Risk Engine CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Evaluate one symbol
    python -m confluex.cli --input data/BTCUSDT_1h.csv --symbol BTCUSDT --timeframe 1h

    # Evaluate and simulate risk reproducibly
    python -m confluex.cli --input data/BTCUSDT_1h.csv --symbol BTCUSDT --timeframe 1h --risk --seed 42

    # Evaluate every SYMBOL_TIMEFRAME.csv in a directory in parallel
    python -m confluex.cli --input-dir data/ --output signals.json
        """
    )

    input_group = parser.add_mutually_exclusive_group(required=True)
    input_group.add_argument("--input", type=str, help="Candle CSV file (single symbol)")
    input_group.add_argument("--input-dir", type=str, help="Directory of SYMBOL_TIMEFRAME.csv files")

    parser.add_argument("--symbol", type=str, help="Symbol (single file mode)")
    parser.add_argument("--timeframe", type=str, choices=TIMEFRAME_ORDER, help="Timeframe (single file mode)")

    parser.add_argument("--config", type=str, help="Path to config JSON file")
    parser.add_argument("--output", type=str, help="Write JSON result to this file instead of stdout")

    # Risk simulation
    parser.add_argument("--risk", action="store_true", help="Run Monte Carlo risk simulation")
    parser.add_argument("--iterations", type=int, default=None, help="Simulation paths (default from config)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible simulation")
    parser.add_argument(
        "--volatility",
        type=str,
        default="atr",
        choices=VOLATILITY_METHODS,
        help="Volatility estimate method (default: atr)"
    )

    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--quiet", action="store_true", help="Suppress all output except errors")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    signal_config, mc_config = load_config(args.config)
    engine = SignalGenerationEngine(signal_config)
    simulator = MonteCarloRiskSimulator(mc_config) if args.risk else None

    if args.input_dir:
        payload = process_batch(engine, simulator, Path(args.input_dir), args)
    else:
        if not args.symbol or not args.timeframe:
            LOG.error("--symbol and --timeframe are required for single file mode")
            return 1
        payload = process_single(engine, simulator, Path(args.input), args.symbol, args.timeframe, args)

    if payload is None:
        return 1

    output = json.dumps(payload, indent=2)
    if args.output:
        Path(args.output).write_text(output)
        LOG.info(f"✓ Written to {args.output}")
    else:
        print(output)
    return 0


def load_config(path):
    """Load {'signal_engine': {...}, 'monte_carlo': {...}} from JSON"""
    if not path:
        LOG.info("Using default configuration")
        return SignalEngineConfig(), MonteCarloConfig()

    LOG.info(f"Loading config from {path}")
    with open(path, 'r') as f:
        config_dict = json.load(f)
    return (
        SignalEngineConfig.from_dict(config_dict.get('signal_engine', {})),
        MonteCarloConfig.from_dict(config_dict.get('monte_carlo', {})),
    )


def load_candles(path: Path, symbol: str, timeframe: str) -> CandleSeries:
    df = pd.read_csv(path)
    LOG.info(f"Loaded {len(df)} candles from {path}")
    return CandleSeries.from_dataframe(df, symbol=symbol, timeframe=timeframe)


def estimate_volatility(method: str, series: CandleSeries, signal: Signal, mc_config: MonteCarloConfig) -> float:
    if method == "returns":
        return VolatilityEstimator.from_returns(series.closes(), window=min(len(series) - 1, 50))
    if method == "implied":
        return VolatilityEstimator.implied_from_levels(
            signal, mc_config.implied_volatility_floor, mc_config.implied_volatility_ceiling
        )
    return VolatilityEstimator.from_series(series)


def assess(simulator, series: CandleSeries, signal: Signal, args) -> dict:
    try:
        volatility = estimate_volatility(args.volatility, series, signal, simulator.config)
        assessment = simulator.assess_risk(signal, volatility, iterations=args.iterations, seed=args.seed)
    except (InsufficientDataException, InvalidParametersException) as e:
        LOG.warning(f"{signal.symbol} {signal.timeframe}: risk simulation skipped: {e}")
        return {'error': str(e)}
    return assessment.to_dict()


def process_single(engine, simulator, input_path: Path, symbol: str, timeframe: str, args):
    """Evaluate one candle file"""
    LOG.info(f"Evaluating {symbol} {timeframe} from {input_path}")
    try:
        series = load_candles(input_path, symbol, timeframe)
    except (OSError, ValueError) as e:
        LOG.error(f"Failed to load {input_path}: {e}")
        return None

    signal = engine.evaluate_signal(symbol, timeframe, series)
    payload = {'signal': signal.to_dict()}
    if simulator is not None:
        payload['risk'] = assess(simulator, series, signal, args)
    return payload


def process_batch(engine, simulator, input_dir: Path, args):
    """Evaluate every SYMBOL_TIMEFRAME.csv file in a directory"""
    csv_files = sorted(input_dir.glob("*.csv"))
    if not csv_files:
        LOG.error(f"No CSV files found in {input_dir}")
        return None

    requests = []
    for csv_file in csv_files:
        symbol, _, timeframe = csv_file.stem.rpartition('_')
        if not symbol or timeframe not in TIMEFRAME_ORDER:
            LOG.warning(f"Skipping {csv_file.name}: expected SYMBOL_TIMEFRAME.csv")
            continue
        try:
            series = load_candles(csv_file, symbol, timeframe)
        except (OSError, ValueError) as e:
            LOG.error(f"✗ {csv_file.name}: {e}")
            continue
        requests.append(EvaluationRequest(symbol=symbol, timeframe=timeframe, candles=series))

    with SignalBatchRunner(engine) as runner:
        report = runner.run_cycle(requests)

    payload = report.to_dict()
    if simulator is not None:
        series_by_key = {r.key: r.candles for r in requests}
        payload['risk'] = {
            f"{r.symbol}_{r.timeframe}": assess(simulator, series_by_key[(r.symbol, r.timeframe)], r.signal, args)
            for r in report.results
            if r.status in (EvaluationStatus.OK, EvaluationStatus.DEGRADED)
        }
    return payload


if __name__ == "__main__":
    sys.exit(main())
