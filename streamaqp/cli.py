import argparse, json, logging
from .engine import EngineConfig, QueryEngine, SAMPLERS


def main(argv=None):
    ap = argparse.ArgumentParser(description="Streaming AQP engine CLI")
    ap.add_argument('--data', help='Historical CSV the summaries are built from')
    ap.add_argument('--query', help='SQL-like query, e.g. SELECT city, SUM(salary) FROM data.csv GROUP BY city')
    ap.add_argument('--method', default='reservoir', choices=list(SAMPLERS) + ['exact'])
    ap.add_argument('--fraction', type=float, default=0.1)
    ap.add_argument('--block_size', type=int, default=100)
    ap.add_argument('--strat_column', default='city')
    ap.add_argument('--seed', type=int, default=None)
    ap.add_argument('--ingest', nargs='*', default=[], help='CSV lines to ingest after building')
    ap.add_argument('--frequency', help='Approximate count of an item in the Count-Min Sketch')
    ap.add_argument('--distinct', help='Approximate distinct count of a column')
    ap.add_argument('--status', action='store_true')
    ap.add_argument('--show_exact', action='store_true', help='Also compute exact for comparison')
    ap.add_argument('--log-level', default='WARNING')
    args = ap.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(),
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    eng = QueryEngine(EngineConfig(
        source=args.data, fraction=args.fraction, block_size=args.block_size,
        strat_column=args.strat_column, seed=args.seed,
    ))
    if args.data:
        eng.build()
    for line in args.ingest:
        eng.ingest(line)

    out = {}
    if args.query:
        out["query"] = eng.run(args.query, method=args.method, return_exact=args.show_exact)
    if args.frequency is not None:
        out["frequency"] = {"item": args.frequency, "approx_count": eng.frequency(args.frequency)}
    if args.distinct:
        out["distinct"] = {"column": args.distinct, "approx_distinct": eng.distinct_count(args.distinct)}
    if args.status or not out:
        out["status"] = eng.status()
    print(json.dumps(out, indent=2, default=str))


if __name__ == '__main__':
    main()
