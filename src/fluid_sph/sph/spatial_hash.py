"""
Uniform-grid spatial hash for SPH neighbour search.

Particles are binned into cubic cells of side ``cell_size`` (the smoothing
length). Each integer cell tuple (ix, iy, iz) is folded into a composite key
by multiplying every coordinate with a distinct large prime and XOR-ing the
results (Teschner et al. 2003); the key modulo the table size selects a
bucket. Buckets are stored in CSR form after a counting sort.

Distinct cells may share a bucket. Every entry keeps its exact cell tuple
and lookups compare it, so aliasing only costs extra scans and never drops
or duplicates a true neighbour.

References
----------
.. [1] Teschner, M., Heidelberger, B., Müller, M., Pomeranets, D., & Gross, M.
       (2003), "Optimized Spatial Hashing for Collision Detection of
       Deformable Objects", Proc. VMV 2003, 47-54.
"""

from typing import Tuple
import numpy as np
import numpy.typing as npt
from numba import njit

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float32]
NDArrayInt = npt.NDArray[np.int64]

HASH_PRIME_X = 73856093
HASH_PRIME_Y = 19349663
HASH_PRIME_Z = 83492791

MIN_TABLE_SIZE = 64


def table_size_for(n_particles: int) -> int:
    """Smallest power of two >= 2N (at least MIN_TABLE_SIZE)."""
    size = MIN_TABLE_SIZE
    while size < 2 * n_particles:
        size *= 2
    return size


@njit(fastmath=True)
def _hash_cell(cx, cy, cz, table_size):
    """Fold one integer cell tuple into a bucket index (table_size is a power of two)."""
    key = (cx * HASH_PRIME_X) ^ (cy * HASH_PRIME_Y) ^ (cz * HASH_PRIME_Z)
    return key & (table_size - 1)


@njit(fastmath=True)
def _hash_cells_numba(cells, table_size):
    """Bucket index for every row of an (N, 3) cell array."""
    n = cells.shape[0]
    keys = np.empty(n, dtype=np.int64)
    for i in range(n):
        keys[i] = _hash_cell(cells[i, 0], cells[i, 1], cells[i, 2], table_size)
    return keys


@njit(fastmath=True, error_model="numpy")
def _scan_particle(i, positions, cells, order, bucket_start, table_size, h2, out, offset, write):
    """
    Visit the 27 cells around particle i and count (or store) neighbours.

    Only entries whose exact cell tuple matches the visited cell are
    considered, then the exact distance filter r² < h² is applied.
    """
    px = positions[i, 0]
    py = positions[i, 1]
    pz = positions[i, 2]
    cx = cells[i, 0]
    cy = cells[i, 1]
    cz = cells[i, 2]

    count = 0
    for ox in range(-1, 2):
        for oy in range(-1, 2):
            for oz in range(-1, 2):
                nx = cx + ox
                ny = cy + oy
                nz = cz + oz
                b = _hash_cell(nx, ny, nz, table_size)
                for k in range(bucket_start[b], bucket_start[b + 1]):
                    j = order[k]
                    if j == i:
                        continue
                    if cells[j, 0] != nx or cells[j, 1] != ny or cells[j, 2] != nz:
                        continue

                    dx = px - positions[j, 0]
                    dy = py - positions[j, 1]
                    dz = pz - positions[j, 2]
                    r2 = dx*dx + dy*dy + dz*dz

                    if r2 < h2:
                        if write:
                            out[offset + count] = j
                        count += 1
    return count


@njit(fastmath=True)
def _count_neighbours_numba(positions, cells, order, bucket_start, table_size, h2):
    """Count neighbours for each particle."""
    N = positions.shape[0]
    counts = np.zeros(N, dtype=np.int64)
    dummy = np.empty(0, dtype=np.int64)

    for i in range(N):
        counts[i] = _scan_particle(
            i, positions, cells, order, bucket_start, table_size, h2, dummy, 0, False
        )
    return counts


@njit(fastmath=True)
def _fill_neighbours_numba(positions, cells, order, bucket_start, table_size, h2, offsets, indices):
    """Fill neighbour indices array."""
    N = positions.shape[0]

    for i in range(N):
        _scan_particle(
            i, positions, cells, order, bucket_start, table_size, h2, indices, offsets[i], True
        )


class SpatialHashGrid:
    """
    Hashed uniform grid over particle positions.

    Attributes
    ----------
    cell_size : float
        Edge length of a grid cell (normally the smoothing length).
    table_size : int
        Number of hash buckets (power of two).
    cells : NDArray[int64], shape (N, 3)
        Integer cell tuple of every particle from the last rebuild.
    order : NDArray[int64], shape (N,)
        Particle indices sorted by bucket.
    bucket_start : NDArray[int64], shape (table_size + 1,)
        CSR offsets: bucket b holds ``order[bucket_start[b]:bucket_start[b+1]]``.
    """

    def __init__(self):
        self.cell_size = 1.0
        self.table_size = MIN_TABLE_SIZE
        self.positions = np.zeros((0, 3), dtype=np.float32)
        self.cells = np.zeros((0, 3), dtype=np.int64)
        self.order = np.zeros(0, dtype=np.int64)
        self.bucket_start = np.zeros(self.table_size + 1, dtype=np.int64)

    @property
    def n_particles(self) -> int:
        return self.positions.shape[0]

    def rebuild(self, positions: NDArrayFloat, cell_size: float) -> None:
        """
        Clear the grid and re-bin every particle.

        Parameters
        ----------
        positions : NDArrayFloat, shape (N, 3)
            Particle positions.
        cell_size : float
            Cell edge length; cell coordinates are floor(coord / cell_size).
        """
        self.positions = np.ascontiguousarray(positions, dtype=np.float32)
        self.cell_size = float(cell_size)
        n = self.positions.shape[0]
        self.table_size = table_size_for(n)

        with np.errstate(divide="ignore", invalid="ignore"):
            scaled = np.floor(self.positions.astype(np.float64) / self.cell_size)
        # Degenerate cell sizes produce non-finite coordinates; park them in cell 0
        scaled = np.where(np.isfinite(scaled), scaled, 0.0)
        self.cells = np.ascontiguousarray(scaled.astype(np.int64))

        keys = _hash_cells_numba(self.cells, self.table_size)
        self.order = np.argsort(keys, kind="stable").astype(np.int64)

        counts = np.bincount(keys, minlength=self.table_size)
        self.bucket_start = np.zeros(self.table_size + 1, dtype=np.int64)
        np.cumsum(counts, out=self.bucket_start[1:])

    def bucket_of(self, cell: Tuple[int, int, int]) -> npt.NDArray[np.int64]:
        """Particle indices in the bucket a cell hashes to (may include aliased cells)."""
        b = _hash_cell(np.int64(cell[0]), np.int64(cell[1]), np.int64(cell[2]), self.table_size)
        return self.order[self.bucket_start[b]:self.bucket_start[b + 1]]

    def query_neighbors(self, i: int, h: float) -> npt.NDArray[np.int64]:
        """
        Find neighbours of particle i.

        Scans the 27 cells in the ±1 range around particle i's cell and keeps
        every j ≠ i with exact Euclidean distance < h.

        Parameters
        ----------
        i : int
            Particle index from the last rebuild.
        h : float
            Search radius; must not exceed the cell size.

        Returns
        -------
        neighbours : NDArray[int64]
            Neighbour indices, in bucket order.
        """
        h2 = float(h) * float(h)
        dummy = np.empty(0, dtype=np.int64)
        count = _scan_particle(
            i, self.positions, self.cells, self.order, self.bucket_start,
            self.table_size, h2, dummy, 0, False
        )
        out = np.empty(count, dtype=np.int64)
        _scan_particle(
            i, self.positions, self.cells, self.order, self.bucket_start,
            self.table_size, h2, out, 0, True
        )
        return out

    def build_neighbour_lists(self, h: float) -> Tuple[npt.NDArray[np.int64], npt.NDArray[np.int64]]:
        """
        Neighbour lists for all particles in CSR form.

        Returns
        -------
        indices : NDArray[int64]
            Concatenated neighbour indices.
        offsets : NDArray[int64], shape (N + 1,)
            Particle i's neighbours are ``indices[offsets[i]:offsets[i+1]]``.
        """
        h2 = float(h) * float(h)

        # 1. Count neighbours
        counts = _count_neighbours_numba(
            self.positions, self.cells, self.order, self.bucket_start, self.table_size, h2
        )

        # 2. Prepare offsets
        offsets = np.zeros(len(counts) + 1, dtype=np.int64)
        offsets[1:] = np.cumsum(counts)

        # 3. Fill indices
        indices = np.empty(offsets[-1], dtype=np.int64)
        _fill_neighbours_numba(
            self.positions, self.cells, self.order, self.bucket_start,
            self.table_size, h2, offsets, indices
        )
        return indices, offsets
