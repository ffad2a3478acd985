from __future__ import annotations
import math
from collections import namedtuple
from typing import Dict, List, Optional, Set, Tuple
from spatial import SpatialHash
from geometry import (signed_area, polygon_area, centroid, ensure_ccw, shrink_polygon, simplify_polygon,
                      poly_aabb, polygons_overlap, obb, min_interior_angle, left_normal, norm, sub, add, mul,
                      dot, wrap_angle, hash01, is_simple)

CORE_FILL    = (235, 214, 170)
STRIP_FILL   = (205, 226, 180)
PLOT_STROKE  = (150, 140, 110)

SIDEWALK          = 2.0
CORE_SIMPLIFY     = 3.0
STRIP_SIMPLIFY    = 2.0
NOISE_AREA        = 50.0
OUTER_FACE_RATIO  = 0.8
TRACE_CAP         = 1000
STRIP_GAP         = 2.0
STRIP_MIN_AREA    = 50.0
STRIP_TURN_LIMIT  = math.pi/4
CHAIN_CAP         = 50
MITER_CAP         = 2.0
DEPTH_JITTER      = 0.2
DEPTH_SCALES      = (1.0, 0.75, 0.5)
GAP_DEPTH_SCALES  = (0.5, 0.3)
TEST_INSET        = 0.5
CLEANUP_ITERATIONS = 10

FaceTrace = namedtuple("FaceTrace", "nodes edges keys")
Point = Tuple[float, float]

def half_key(u: int, v: int) -> str: return f"{u}->{v}"

def angle_sorted_adjacency(graph) -> Dict[int, List[Tuple[float, int]]]:
    """node id -> [(angle, neighbour id)] sorted by angle in (-pi, pi]."""
    adj = {}
    for nid, n in graph.nodes.items():
        lst = []
        for m in n.neighbors:
            o = graph.nodes.get(m)
            if o is not None: lst.append((math.atan2(o.y-n.y, o.x-n.x), m))
        lst.sort()
        adj[nid] = lst
    return adj

def trace_face(graph, adjacency: Dict[int, List[Tuple[float, int]]], start: int, second: int,
               visited: Set[str], bridge_ids=frozenset(), cap: int = TRACE_CAP) -> Optional[FaceTrace]:
    """Walk the face on the left of start->second, turning to the angularly next edge at each node.

    Every half-edge walked is added to visited. Returns a FaceTrace, or None
    when the walk hits a bridge, a dead end (U-turn), a missing node or edge,
    an already visited half-edge, or the step cap.
    """
    first = graph.edge_between(start, second)
    if first is None or first.id in bridge_ids: return None
    nodes = [start]; edges = [first.id]; keys = []
    prev, curr = start, second
    steps = 0
    while True:
        key = half_key(prev, curr)
        if key in visited: return None
        visited.add(key); keys.append(key)
        if curr == start: break
        if steps >= cap: return None
        nodes.append(curr)
        neigh = adjacency.get(curr)
        pn = graph.nodes.get(prev); cn = graph.nodes.get(curr)
        if not neigh or pn is None or cn is None: return None
        angle_in = math.atan2(pn.y-cn.y, pn.x-cn.x)
        nxt = neigh[0][1]
        for ang, m in neigh:
            if ang > angle_in + 1e-4:
                nxt = m; break
        if nxt == prev: return None
        e = graph.edge_between(curr, nxt)
        if e is None or e.id in bridge_ids: return None
        edges.append(e.id)
        prev, curr = curr, nxt
        steps += 1
    return FaceTrace(nodes, edges, keys)

class Plot:
    __slots__=("id","points","kind","area","frontage","keys","test_points","aabb")
    def __init__(self, pid, points, kind, frontage, keys, test_points=None):
        self.id=pid; self.points=points; self.kind=kind
        self.area=polygon_area(points); self.frontage=list(frontage); self.keys=set(keys)
        self.test_points = test_points or points
        self.aabb = poly_aabb(self.test_points)
    @property
    def is_enclosed(self): return self.kind == "enclosed"
    @property
    def centroid(self): return centroid(self.points)
    def __repr__(self): return f"Plot({self.id}, {self.kind}, area={self.area:.0f}, n={len(self.points)})"

class ExtractionContext:
    """Occupancy state for one extraction run: claimed half-edges, walked half-edges, accepted plots."""
    def __init__(self):
        self.occupied = set()
        self.visited = set()
        self.processed = set()
        self.plots = []
        self.index = SpatialHash(50.0)
        self._next = 0

    def new_id(self, prefix):
        pid = f"{prefix}_{self._next}"; self._next += 1
        return pid

    def overlaps(self, test_points, aabb):
        cand = []; self.index.query(aabb, cand)
        for p in cand:
            if polygons_overlap(test_points, p.test_points, aabb, p.aabb): return True
        return False

    def accept(self, plot):
        self.plots.append(plot)
        self.index.insert(plot.aabb, plot)
        self.occupied.update(plot.keys)

class PlotSystem:
    """Turns the road graph into non-overlapping plots.

    Enclosed faces become core plots; remaining road sides get strip plots
    extruded from straight runs of road; a last sweep fills one-sided streets.
    """
    def __init__(self, map_size, params, graph, water, center=None):
        self.MAP_WIDTH, self.HEIGHT = map_size
        self.params = params
        self.graph = graph
        self.water = water
        self.center = center if center is not None else (self.MAP_WIDTH*0.5, self.HEIGHT*0.5)
        self.plots = []

    def _p(self, key, default=None): return self.params.get(key, default)

    def clear(self):
        self.plots = []

    def generate(self, center=None):
        if center is not None: self.center = center
        ctx = ExtractionContext()
        g = self.graph
        if len(g.nodes) >= 2 and g.edges:
            bridges = g.bridge_edge_ids
            self.detect_enclosed(ctx, bridges)
            self.generate_strips(ctx, bridges)
            self.fill_gaps(ctx, bridges)
        cx, cy = self.center
        ctx.plots.sort(key=lambda p: math.hypot(p.centroid[0]-cx, p.centroid[1]-cy))
        self.plots = ctx.plots
        if self._p("VERBOSE"):
            core = sum(1 for p in self.plots if p.is_enclosed)
            print("[Plots] generate", len(self.plots), f"(core={core}, strip={len(self.plots)-core})")
        return self.plots

    # ---------------- enclosed ----------------

    def _face_polygon(self, trace: FaceTrace) -> List[Point]:
        return [self.graph.nodes[n].pos for n in trace.nodes]

    def _is_candidate_face(self, poly):
        area = signed_area(poly)
        if area <= 0: return False
        if area > self.MAP_WIDTH*self.HEIGHT*OUTER_FACE_RATIO or area < NOISE_AREA: return False
        return not self.water.is_point_in_water(centroid(poly))

    def detect_enclosed(self, ctx, bridges):
        adj = angle_sorted_adjacency(self.graph)
        for e in list(self.graph.edges.values()):
            if e.id in bridges: continue
            for u, v in ((e.u, e.v), (e.v, e.u)):
                if half_key(u, v) in ctx.visited: continue
                trace = trace_face(self.graph, adj, u, v, ctx.visited, bridges)
                if trace is not None and len(trace.nodes) > 2:
                    self.make_enclosed(ctx, trace)

    def make_enclosed(self, ctx, trace):
        poly = self._face_polygon(trace)
        if not self._is_candidate_face(poly): return None
        shrunk = shrink_polygon(poly, SIDEWALK)
        if len(shrunk) < 3: return None
        simple = ensure_ccw(simplify_polygon(shrunk, CORE_SIMPLIFY))
        if not is_simple(simple):
            if not is_simple(shrunk): return None
            simple = ensure_ccw(shrunk)
        if len(simple) < 3 or polygon_area(simple) < self._p("MIN_BUILDING_AREA", 64): return None
        test = shrink_polygon(simple, TEST_INSET) or simple
        aabb = poly_aabb(test)
        if ctx.overlaps(test, aabb): return None
        plot = Plot(ctx.new_id("core"), simple, "enclosed", trace.edges, trace.keys, test)
        ctx.accept(plot)
        return plot

    # ---------------- strips ----------------

    def _strip_depth(self):
        fixed = self._p("FIXED_BUILDING_DEPTH", 15)
        return fixed + 15 if fixed > 0 else 50.0

    def _can_extend(self, ctx, a, b, heading, bridges):
        """Half-edge a->b continues a run: free, not a bridge, and within the turn limit of heading."""
        key = half_key(a, b)
        if key in ctx.occupied or key in ctx.processed: return False
        e = self.graph.edge_between(a, b)
        if e is None or e.id in bridges: return False
        na = self.graph.nodes[a]; nb = self.graph.nodes[b]
        out = math.atan2(nb.y-na.y, nb.x-na.x)
        return abs(wrap_angle(out - heading)) < STRIP_TURN_LIMIT

    def build_chain(self, ctx, u, v, bridges):
        """Rewind from u->v to the start of its straight run, then walk forward. Returns node ids."""
        g = self.graph; nodes = g.nodes
        chain = [u, v]; seen = {u, v}
        for _ in range(CHAIN_CAP):
            a, b = chain[0], chain[1]
            na = nodes[a]
            if na.degree != 2: break
            p = na.neighbors[0] if na.neighbors[1] == b else na.neighbors[1]
            if p in seen: break
            heading = math.atan2(nodes[b].y-na.y, nodes[b].x-na.x)
            if not self._can_extend(ctx, p, a, heading, bridges): break
            chain.insert(0, p); seen.add(p)
        for _ in range(CHAIN_CAP):
            a, b = chain[-2], chain[-1]
            nb = nodes[b]
            if nb.degree != 2: break
            n = nb.neighbors[0] if nb.neighbors[1] == a else nb.neighbors[1]
            if n in seen: break
            heading = math.atan2(nb.y-nodes[a].y, nb.x-nodes[a].x)
            if not self._can_extend(ctx, b, n, heading, bridges): break
            chain.append(n); seen.add(n)
        return chain

    def _blocked(self, pt):
        x, y = pt
        if not (0 <= x <= self.MAP_WIDTH and 0 <= y <= self.HEIGHT): return True
        return self.water.is_point_in_water(pt)

    def _back_offset(self, front, direction, depth):
        """Largest offset <= depth along direction that stays dry and on the map, by bisection."""
        tip = add(front, mul(direction, depth))
        if not self._blocked(tip): return depth
        lo, hi = 0.0, depth
        for _ in range(10):
            mid = (lo+hi)*0.5
            if self._blocked(add(front, mul(direction, mid))): hi = mid
            else: lo = mid
        return lo

    def _clamp(self, pt):
        return (min(max(pt[0], 0.0), self.MAP_WIDTH), min(max(pt[1], 0.0), self.HEIGHT))

    def extrude_chain(self, chain, gap, depth):
        """Offset a node chain to its left with miter joins into a closed CCW polygon."""
        pts = [self.graph.nodes[n].pos for n in chain]
        n = len(pts)
        if n < 2: return []
        dirs = [norm(sub(pts[i+1], pts[i])) for i in range(n-1)]
        front = []; back = []
        for i in range(n):
            if i == 0: m = left_normal(dirs[0])
            elif i == n-1: m = left_normal(dirs[-1])
            else:
                n_in = left_normal(dirs[i-1]); n_out = left_normal(dirs[i])
                bis = norm(add(n_in, n_out), n_in)
                c = dot(bis, n_in)
                m = mul(bis, MITER_CAP if c < 1.0/MITER_CAP else 1.0/c)
            f = add(pts[i], mul(m, gap))
            jitter = 1.0 + (hash01(chain[i], 7919, 1013) - 0.5)*DEPTH_JITTER
            d = self._back_offset(f, m, depth*jitter)
            front.append(f); back.append(self._clamp(add(f, mul(m, d))))
        return front + back[::-1]

    def _strip_candidate(self, ctx, chain, depth):
        raw = self.extrude_chain(chain, STRIP_GAP, depth)
        if len(raw) < 3 or signed_area(raw) <= 0: return None
        poly = ensure_ccw(simplify_polygon(raw, STRIP_SIMPLIFY))
        if not is_simple(poly):
            if not is_simple(raw): return None
            poly = raw
        if len(poly) < 3 or polygon_area(poly) < STRIP_MIN_AREA: return None
        test = shrink_polygon(poly, TEST_INSET)
        if len(test) < 3: return None
        if obb(test).width < self._p("MIN_EDGE_LENGTH", 4): return None
        if self.water.is_point_in_water(centroid(poly)): return None
        aabb = poly_aabb(test)
        if ctx.overlaps(test, aabb): return None
        return poly, test

    def try_strip(self, ctx, chain, depth, scales, bridges):
        for s in scales:
            got = self._strip_candidate(ctx, chain, depth*s)
            if got is None: continue
            poly, test = got
            frontage = []
            for a, b in zip(chain, chain[1:]):
                e = self.graph.edge_between(a, b)
                if e is not None: frontage.append(e.id)
            keys = [half_key(a, b) for a, b in zip(chain, chain[1:])]
            plot = Plot(ctx.new_id("strip"), poly, "strip", frontage, keys, test)
            ctx.accept(plot)
            return plot
        return None

    def _ordered_half_edges(self, bridges):
        g = self.graph; cx, cy = self.center
        out = []
        for e in g.edges.values():
            if e.id in bridges: continue
            for u, v in ((e.u, e.v), (e.v, e.u)):
                n = g.nodes[u]
                out.append((math.hypot(n.x-cx, n.y-cy), e.id, u, v))
        out.sort()
        return [(u, v) for _, _, u, v in out]

    def generate_strips(self, ctx, bridges):
        depth = self._strip_depth()
        for u, v in self._ordered_half_edges(bridges):
            key = half_key(u, v)
            if key in ctx.occupied or key in ctx.processed: continue
            chain = self.build_chain(ctx, u, v, bridges)
            if self.try_strip(ctx, chain, depth, DEPTH_SCALES, bridges): continue
            if len(chain) > 2 and self.try_strip(ctx, [u, v], depth, DEPTH_SCALES, bridges): continue
            ctx.processed.update(half_key(a, b) for a, b in zip(chain, chain[1:]))

    def _touches_occupied(self, ctx, u, v):
        g = self.graph
        if half_key(v, u) in ctx.occupied: return True
        if any(half_key(v, w) in ctx.occupied for w in g.nodes[v].neighbors if w != u): return True
        return any(half_key(w, u) in ctx.occupied for w in g.nodes[u].neighbors if w != v)

    def fill_gaps(self, ctx, bridges):
        depth = self._strip_depth(); added = 0
        for e in list(self.graph.edges.values()):
            if e.id in bridges: continue
            for u, v in ((e.u, e.v), (e.v, e.u)):
                if half_key(u, v) in ctx.occupied: continue
                if not self._touches_occupied(ctx, u, v): continue
                if self.try_strip(ctx, [u, v], depth, GAP_DEPTH_SCALES, bridges): added += 1
        return added

    # ---------------- cleanup ----------------

    def plot_is_buildable(self, plot, can_fit=None):
        if plot.area < self._p("MIN_BUILDING_AREA", 64): return False
        if obb(plot.points).width < self._p("MIN_EDGE_LENGTH", 4): return False
        if min_interior_angle(plot.points) < self._p("MIN_PLOT_ANGLE", 15): return False
        return can_fit is None or bool(can_fit(plot))

    def cleanup_plots(self, can_fit=None):
        """Drop plots that fail area, width or angle limits or cannot hold a building. Returns the count removed."""
        kept = [p for p in self.plots if self.plot_is_buildable(p, can_fit)]
        removed = len(self.plots) - len(kept)
        self.plots = kept
        if removed and self._p("VERBOSE"): print("[Plots] cleanup removed", removed)
        return removed

    def find_empty_road_loops(self):
        """Longest edge of every plot-sized face none of whose half-edges backs a plot."""
        g = self.graph
        occupied = set()
        for p in self.plots: occupied.update(p.keys)
        bridges = g.bridge_edge_ids
        adj = angle_sorted_adjacency(g)
        visited = set(); out = []
        for e in list(g.edges.values()):
            if e.id in bridges: continue
            for u, v in ((e.u, e.v), (e.v, e.u)):
                if half_key(u, v) in visited: continue
                trace = trace_face(g, adj, u, v, visited, bridges)
                if trace is None or len(trace.nodes) < 3: continue
                if not self._is_candidate_face(self._face_polygon(trace)): continue
                if any(k in occupied for k in trace.keys): continue
                longest = max(trace.edges, key=lambda eid: (g.edge_length(g.edges[eid]), -eid))
                if longest not in out: out.append(longest)
        return out

    def draw(self, screen, world_to_screen, cam_zoom):
        import pygame
        for p in self.plots:
            pts = [world_to_screen(q) for q in p.points]
            if len(pts) < 3: continue
            pygame.draw.polygon(screen, CORE_FILL if p.is_enclosed else STRIP_FILL, pts)
            pygame.draw.polygon(screen, PLOT_STROKE, pts, 1)
