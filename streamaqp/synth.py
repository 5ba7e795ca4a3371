import argparse
import numpy as np
import pandas as pd

NAMES = ["Aarav", "Isha", "Kabir", "Meera", "Arjun", "Neha", "Rohan", "Saanvi", "Aditya", "Kiara"]
CITIES = ["Delhi", "Mumbai", "Bangalore", "Hyderabad", "Pune", "Chennai", "Kolkata", "Ahmedabad", "Jaipur", "Chandigarh"]
COLUMNS = ["id", "name", "age", "city", "salary"]


def make_frame(rows: int, seed: int | None = None, start_id: int = 1, cities=None) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    cities = CITIES if cities is None else list(cities)
    return pd.DataFrame({
        "id": np.arange(start_id, start_id + rows),
        "name": rng.choice(NAMES, size=rows),
        "age": rng.integers(20, 36, size=rows),
        "city": rng.choice(cities, size=rows),
        "salary": rng.integers(30000, 80001, size=rows),
    }, columns=COLUMNS)


def write_csv(path, rows: int, seed: int | None = None, chunksize: int = 1_000_000, cities=None) -> str:
    rng = np.random.default_rng(seed)
    with open(path, "w", encoding="utf-8") as f:
        f.write(",".join(COLUMNS) + "\n")

    for start in range(0, rows, chunksize):
        size = min(chunksize, rows - start)
        df = make_frame(size, seed=int(rng.integers(2**32)), start_id=start + 1, cities=cities)
        df.to_csv(path, mode="a", header=False, index=False)
    return str(path)


def main():
    ap = argparse.ArgumentParser(description="Write a synthetic id,name,age,city,salary CSV")
    ap.add_argument('--out', default='sample.csv')
    ap.add_argument('--rows', type=int, default=100_000)
    ap.add_argument('--seed', type=int, default=123)
    ap.add_argument('--chunksize', type=int, default=1_000_000)
    args = ap.parse_args()

    write_csv(args.out, args.rows, seed=args.seed, chunksize=args.chunksize)
    print(f"Wrote {args.rows:,} rows to {args.out}")


if __name__ == '__main__':
    main()
