"""
Plant Models
============

Discrete linear models x_{k+1} = A x_k + B u_k that feed ``generate_tables``
and drive closed-loop simulations.

Models given in continuous time are discretised with a zero-order hold on
the input, which is exact for piecewise-constant controls applied once per
control cycle.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.linalg import expm

from .exceptions import DimensionError, InvalidInputError


@dataclass
class LinearSystem:
    """
    Discrete-time plant sampled every ``dt`` seconds.

    Args:
        A: State matrix (n, n)
        B: Input matrix (n, m)
        dt: Control period in seconds

    Example:
        >>> quad = quadrotor_hover(freq=20.0)
        >>> x1 = quad.step(x0, u0)
    """
    A: np.ndarray
    B: np.ndarray
    dt: float = 1.0

    def __post_init__(self):
        self.A = np.asarray(self.A, dtype=np.float64)
        self.B = np.asarray(self.B, dtype=np.float64)

        if self.A.ndim != 2 or self.A.shape[0] != self.A.shape[1]:
            raise DimensionError(f"A must be square, got shape {self.A.shape}")
        if self.B.ndim != 2 or self.B.shape[0] != self.A.shape[0]:
            raise DimensionError(
                f"B must have {self.A.shape[0]} rows, got shape {self.B.shape}"
            )
        if not (np.all(np.isfinite(self.A)) and np.all(np.isfinite(self.B))):
            raise InvalidInputError("A and B must be finite")
        if self.dt <= 0:
            raise InvalidInputError(f"dt must be positive, got {self.dt}")

    @property
    def n_states(self) -> int:
        return self.A.shape[0]

    @property
    def n_inputs(self) -> int:
        return self.B.shape[1]

    def step(self, x: np.ndarray, u: np.ndarray) -> np.ndarray:
        """Next state A x + B u."""
        return self.A @ x + self.B @ u

    def controllability_rank(self) -> int:
        """Rank of [B, AB, ..., A^(n-1) B]."""
        blocks = [self.B]
        for _ in range(self.n_states - 1):
            blocks.append(self.A @ blocks[-1])
        return int(np.linalg.matrix_rank(np.hstack(blocks)))

    def is_controllable(self) -> bool:
        """
        True if every state can be steered by the inputs.

        An uncontrollable pair still yields a Riccati cache when the
        unreachable modes are stable, but the ADMM penalty then acts on
        modes the inputs cannot move.
        """
        return self.controllability_rank() == self.n_states

    @classmethod
    def from_continuous(cls, Ac: np.ndarray, Bc: np.ndarray, dt: float) -> "LinearSystem":
        """
        Zero-order-hold discretisation of dx/dt = Ac x + Bc u.

        A and B are read off exp([[Ac, Bc], [0, 0]] dt).
        """
        Ac = np.asarray(Ac, dtype=np.float64)
        Bc = np.asarray(Bc, dtype=np.float64)
        if dt <= 0:
            raise InvalidInputError(f"dt must be positive, got {dt}")
        if Ac.ndim != 2 or Bc.ndim != 2 or Bc.shape[0] != Ac.shape[0]:
            raise DimensionError(
                f"Ac {Ac.shape} and Bc {Bc.shape} do not describe one system"
            )

        n, m = Bc.shape
        block = np.zeros((n + m, n + m))
        block[:n, :n] = Ac * dt
        block[:n, n:] = Bc * dt
        phi = expm(block)
        return cls(phi[:n, :n], phi[:n, n:], dt=dt)


def double_integrator(dt: float = 0.1) -> LinearSystem:
    """Point mass on a line. States: [position, velocity]; input: acceleration."""
    A = np.array([[1.0, dt], [0.0, 1.0]])
    B = np.array([[0.5 * dt**2], [dt]])
    return LinearSystem(A, B, dt=dt)


def double_integrator_2d(dt: float = 0.1) -> LinearSystem:
    """Point mass in the plane. States: [x, y, vx, vy]; inputs: [ax, ay]."""
    axis = double_integrator(dt)
    return LinearSystem(np.kron(axis.A, np.eye(2)), np.kron(axis.B, np.eye(2)), dt=dt)


QUADROTOR_STATES = (
    "x", "y", "z",
    "phi_x", "phi_y", "phi_z",
    "vx", "vy", "vz",
    "wx", "wy", "wz",
)


def quadrotor_hover(
    freq: float = 20.0,
    mass: float = 0.027,
    inertia: tuple = (1.66e-5, 1.66e-5, 2.93e-5),
    arm_length: float = 0.046,
    thrust_coeff: float = 2.245365e-6 * 65535,
    torque_ratio: float = 0.005964552,
    gravity: float = 9.81,
) -> LinearSystem:
    """
    Crazyflie-sized quadrotor linearised at hover.

    States: position (m), attitude as Rodrigues parameters, linear
    velocity, body angular velocity (12 states, see QUADROTOR_STATES).
    Inputs: the four normalised motor commands, as deviations from the
    hover command (Crazyflie motor order).

    Near hover the Rodrigues parameters are half the rotation angles, so
    phi_dot = omega / 2 and a tilt phi gives a horizontal acceleration of
    2 g phi.

    Args:
        freq: Control frequency (Hz); the model is held constant over
            each period of 1 / freq
        mass: Vehicle mass (kg)
        inertia: Principal moments of inertia (kg m^2)
        arm_length: Motor distance from the centre (m)
        thrust_coeff: Thrust per unit motor command (N)
        torque_ratio: Yaw torque per unit thrust (m)
        gravity: Gravitational acceleration (m/s^2)

    Returns:
        LinearSystem with 12 states and 4 inputs
    """
    if freq <= 0:
        raise InvalidInputError(f"freq must be positive, got {freq}")

    g = gravity
    kt = thrust_coeff
    km = kt * torque_ratio
    el = arm_length / np.sqrt(2.0)
    Jx, Jy, Jz = inertia

    Ac = np.zeros((12, 12))
    Ac[0:3, 6:9] = np.eye(3)           # p_dot = v
    Ac[3:6, 9:12] = 0.5 * np.eye(3)    # phi_dot = omega / 2
    Ac[6, 4] = 2 * g                   # tilt about y accelerates +x
    Ac[7, 3] = -2 * g                  # tilt about x accelerates -y

    Bc = np.zeros((12, 4))
    Bc[8, :] = kt / mass
    Bc[9, :] = el * kt / Jx * np.array([-1, -1, 1, 1])
    Bc[10, :] = el * kt / Jy * np.array([-1, 1, 1, -1])
    Bc[11, :] = km / Jz * np.array([-1, 1, -1, 1])

    return LinearSystem.from_continuous(Ac, Bc, dt=1.0 / freq)
