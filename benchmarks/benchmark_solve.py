#!/usr/bin/env python3
"""
tinyadmm Solve Benchmark: control-cycle timing on the quadrotor hover problem
"""

import sys
sys.path.insert(0, '../python')

import time
import numpy as np

import tinyadmm

print(f"tinyadmm version: {tinyadmm.__version__}")
print()

MAX_DEV_X = np.array([
    1.0, 1.0, 1.0,
    0.1, 0.1, 0.1,
    0.5, 0.5, 0.5,
    0.2, 0.2, 0.2,
])
MAX_DEV_U = np.full(4, 0.1)

HOVER_SETPOINT = np.array([0, 0, 2, 0, 0, 0, 0, 0, 0, 0, 0, 0], dtype=float)
HOVER_START = np.array([0, 1, 0, 0.2, 0, 0, 0.1, 0, 0, 0, 0, 0], dtype=float)


def hover_tables(horizon, freq=20.0, rho=1.0):
    """Tables of the quadrotor hovering problem."""
    return tinyadmm.generate_tables(
        tinyadmm.quadrotor_hover(freq=freq),
        Q=1.0 / MAX_DEV_X**2,
        R=1.0 / MAX_DEV_U**2,
        rho=rho,
        horizon=horizon,
    )


def hover_context(tables, dtype=np.float64, max_iter=100):
    return tinyadmm.SolverContext.from_tables(
        tables,
        tinyadmm.Settings(max_iter=max_iter),
        dtype=dtype,
        x_min=-5.0, x_max=5.0, u_min=-0.5, u_max=0.5,
    )


def run_closed_loop(ctx, n_steps=70):
    """Closed-loop hover; returns per-cycle times and iterations."""
    times = np.zeros(n_steps)
    iters = np.zeros(n_steps, dtype=int)

    ctx.set_reference(HOVER_SETPOINT)
    x = HOVER_START.copy()

    for k in range(n_steps):
        start = time.perf_counter()
        ctx.set_initial_state(x)
        ctx.reset_duals()
        ctx.solve()
        u = ctx.first_input
        times[k] = time.perf_counter() - start

        iters[k] = ctx.work.iter
        x = ctx.work.step(x, u)

    error = np.linalg.norm(x - HOVER_SETPOINT)
    return times, iters, error


def benchmark_horizon():
    """Cycle time against horizon length."""
    print("=" * 70)
    print("Horizon Scaling Benchmark")
    print("=" * 70)

    horizons = [5, 10, 20, 40]
    all_results = []

    for horizon in horizons:
        start = time.perf_counter()
        tables = hover_tables(horizon)
        setup = time.perf_counter() - start

        times, iters, error = run_closed_loop(hover_context(tables))
        all_results.append((horizon, setup, times, iters, error))
        print(f"  N={horizon:3d}: setup {setup*1000:7.1f} ms, "
              f"median cycle {np.median(times)*1000:7.3f} ms, "
              f"mean iters {iters.mean():6.1f}, final error {error:.4f}")

    print("\n" + "=" * 70)
    print("Summary")
    print("=" * 70)
    print(f"{'N':>6} {'Setup (ms)':>12} {'Median (ms)':>12} {'Max (ms)':>10} {'Iters':>8}")
    print("-" * 70)

    for horizon, setup, times, iters, _ in all_results:
        print(f"{horizon:>6} {setup*1000:>12.1f} {np.median(times)*1000:>12.3f} "
              f"{times.max()*1000:>10.3f} {iters.max():>8d}")


def benchmark_precision():
    """Single against double precision."""
    print("\n" + "=" * 70)
    print("Precision Benchmark")
    print("=" * 70)

    tables = hover_tables(10)

    for dtype in (np.float64, np.float32):
        times, iters, error = run_closed_loop(hover_context(tables, dtype=dtype))
        print(f"  {np.dtype(dtype).name:>8}: median cycle {np.median(times)*1000:7.3f} ms, "
              f"mean iters {iters.mean():6.1f}, final error {error:.4f}")


def benchmark_iteration_cap():
    """Effect of the per-cycle iteration budget on tracking."""
    print("\n" + "=" * 70)
    print("Iteration Budget Benchmark")
    print("=" * 70)

    tables = hover_tables(10)

    for max_iter in (1, 5, 20, 100):
        times, iters, error = run_closed_loop(hover_context(tables, max_iter=max_iter))
        print(f"  max_iter={max_iter:4d}: median cycle {np.median(times)*1000:7.3f} ms, "
              f"final error {error:.4f}")


if __name__ == "__main__":
    benchmark_horizon()
    benchmark_precision()
    benchmark_iteration_cap()
