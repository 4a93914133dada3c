import numpy as np
import pytest


class FixedClusterer:
    """Deterministic stand-in for the clustering collaborator."""
    def __init__(self, centroids):
        self.centroids = list(centroids)
        self.calls = []

    def cluster(self, points, k, max_iterations, epsilon, seeded):
        self.calls.append({"n_points": len(points), "k": k, "max_iterations": max_iterations,
                           "epsilon": epsilon, "seeded": seeded})
        return list(self.centroids)


def make_step(rows=10, cols=20, split=10, left=0, right=40):
    img = np.full((rows, cols), left, dtype=np.uint8)
    img[:, split:] = right
    return img


@pytest.fixture
def step_image():
    # dark left half, bright right half; boundary between columns 9 and 10
    return make_step()


@pytest.fixture
def noise_image():
    rng = np.random.default_rng(7)
    return rng.integers(0, 256, size=(40, 40), dtype=np.uint8)
