import argparse, json, logging, statistics, time
from .engine import EngineConfig, QueryEngine, SAMPLERS
from .parser import parse

logger = logging.getLogger(__name__)


def main(argv=None):
    ap = argparse.ArgumentParser(description="Benchmark approx vs exact")
    ap.add_argument('--data', required=True, help='Path to CSV (used inside query)')
    ap.add_argument('--query', required=True, help='SQL-like query (must reference the same path)')
    ap.add_argument('--fractions', nargs='+', type=float, default=[0.05, 0.1, 0.2, 0.4])
    ap.add_argument('--methods', nargs='+', default=list(SAMPLERS), choices=list(SAMPLERS))
    ap.add_argument('--block_size', type=int, default=100)
    ap.add_argument('--trials', type=int, default=5)
    ap.add_argument('--seed', type=int, default=42)
    ap.add_argument('--log-level', default='WARNING')
    args = ap.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper())
    report = run_benchmark(args.query, args.fractions, args.methods,
                           trials=args.trials, seed=args.seed, block_size=args.block_size)
    print(json.dumps(report, indent=2))


def run_benchmark(query, fractions, methods=SAMPLERS, trials=5, seed=42, block_size=100):
    source = parse(query).source
    exact = QueryEngine().run(query, method='exact')
    exact_res = exact['result']

    runs = []
    for f in fractions:
        for m in methods:
            errs, times = [], []
            for t in range(trials):
                eng = QueryEngine(EngineConfig(fraction=f, block_size=block_size, seed=seed + t))
                t0 = time.time()
                eng.build(source, names=[m])
                build_time = time.time() - t0
                out = eng.run(query, method=m)
                errs.append(rel_error(exact_res, out['result']))
                times.append({'build_sec': build_time, 'query_sec': out['time_sec']})
            valid = [e for e in errs if e is not None]
            runs.append({
                'fraction': f,
                'method': m,
                'rel_error': statistics.mean(valid) if valid else None,
                'rel_error_spread': statistics.pstdev(valid) if valid else None,
                'build_sec': statistics.mean(x['build_sec'] for x in times),
                'query_sec': statistics.mean(x['query_sec'] for x in times),
            })
            logger.info("fraction=%s method=%s done", f, m)

    return {
        'exact_time_sec': exact['time_sec'],
        'exact_rows': exact_res,
        'runs': runs,
    }


def rel_error(exact, approx):

    def to_map(rows):
        if len(rows) == 1 and len(rows[0]) == 1:
            return {('__single__',): list(rows[0].values())[0]}
        d = {}
        for r in rows:
            keys = tuple((k, v) for k, v in r.items() if not any(a in k for a in ['SUM(', 'AVG(']))
            val_key = [k for k in r.keys() if any(a in k for a in ['SUM(', 'AVG('])][0]
            d[keys] = r[val_key]
        return d
    me = to_map(exact)
    ma = to_map(approx)
    errs = []
    for k, v in me.items():
        if k in ma and ma[k] is not None:
            denom = abs(v) if v != 0 else 1.0
            errs.append(abs(ma[k] - v) / denom)
    if not errs:
        return None
    return sum(errs) / len(errs)


if __name__ == '__main__':
    main()
