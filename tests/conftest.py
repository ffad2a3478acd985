import random
import pytest
from params import make_params
from water import WaterSystem
from roads import RoadGraph

MAP = (500, 500)

class OpenBoundary:
    """City limit that covers the whole map at full density."""
    def __init__(self, center=(250.0, 250.0), radius=1000.0):
        self.center = center; self.radius = radius
    def is_point_inside_city(self, pt): return True
    def distance_to_boundary(self, pt): return self.radius
    def get_urban_density(self, pt): return 1.0

def build_graph(points, pairs, cell=20.0):
    g = RoadGraph(cell)
    ids = [g.add_node(p).id for p in points]
    for a, b in pairs:
        g.add_edge(ids[a], ids[b])
    return g

def grid_graph(n=4, spacing=60.0, origin=(100.0, 100.0)):
    """n x n nodes joined into (n-1)^2 square blocks."""
    pts = [(origin[0]+i*spacing, origin[1]+j*spacing) for j in range(n) for i in range(n)]
    pairs = []
    for j in range(n):
        for i in range(n):
            k = j*n + i
            if i < n-1: pairs.append((k, k+1))
            if j < n-1: pairs.append((k, k+n))
    return build_graph(pts, pairs)

def water_band(x0, x1, map_size=MAP, params=None):
    w = WaterSystem(map_size, params or make_params())
    w.add_body("RIVER", [(x0, -10), (x1, -10), (x1, map_size[1]+10), (x0, map_size[1]+10)])
    return w

@pytest.fixture
def params():
    return make_params(seed=1)

@pytest.fixture
def dry_water(params):
    return WaterSystem(MAP, params, random.Random(0))

@pytest.fixture
def open_boundary():
    return OpenBoundary()

@pytest.fixture
def square_graph():
    return build_graph([(0, 0), (10, 0), (10, 10), (0, 10)], [(0, 1), (1, 2), (2, 3), (3, 0)])

@pytest.fixture
def grid():
    return grid_graph()

@pytest.fixture
def lone_road():
    return build_graph([(100+i*10, 100) for i in range(5)], [(i, i+1) for i in range(4)])

def no_proper_crossings(graph, tol=1e-3):
    from geometry import segments_cross
    edges = list(graph.edges.values())
    for i, e in enumerate(edges):
        a1 = graph.nodes[e.u].pos; a2 = graph.nodes[e.v].pos
        for f in edges[i+1:]:
            if {e.u, e.v} & {f.u, f.v}: continue
            if segments_cross(a1, a2, graph.nodes[f.u].pos, graph.nodes[f.v].pos, tol):
                return False
    return True

def overlapping_pairs(polys):
    """Pairs of test polygons that overlap, found through a spatial hash."""
    from spatial import SpatialHash
    from geometry import poly_aabb, polygons_overlap
    index = SpatialHash(50.0); hits = []
    for i, poly in enumerate(polys):
        box = poly_aabb(poly); near = []
        index.query(box, near)
        for j in near:
            if polygons_overlap(poly, polys[j], box, None): hits.append((j, i))
        index.insert(box, i)
    return hits
