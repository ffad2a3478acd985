import random, math
from spatial import SpatialHash
from geometry import (polygon_area, centroid, obb, split_polygon, point_seg_dist, poly_aabb, pad_rect,
                      rects_overlap, remove_collinear, shrink_polygon, polygons_overlap, ensure_ccw, norm,
                      sub, left_normal, dot, validate_polygon)

HOUSE_FILL     = (214, 219, 224)
HOUSE_STROKE   = (120, 130, 140)
COURTYARD_FILL = (190, 210, 170)
NEW_FILL       = (240, 200, 120)

GRID_CELL       = 50
MAX_DEPTH       = 10
LOT_AREA_FACTOR = 1.5
FRAGMENT_FLOOR  = 10.0
TOUCH_TOL       = 3.0
SHAPE_TOL       = 2.0
COLLISION_INSET = 0.25

class Building:
    __slots__=("id","points","centroid","aabb","test_points")
    def __init__(self, bid, points):
        self.id=bid; self.points=points; self.centroid=centroid(points)
        self.test_points = shrink_polygon(points, COLLISION_INSET) or points
        self.aabb = poly_aabb(points)
    @property
    def area(self): return polygon_area(self.points)
    def __repr__(self): return f"Building({self.id}, area={self.area:.0f})"

class BuildingSystem:
    """Recursive lot subdivision of plots and collision-checked building placement.

    Generation is chunked: start_generation() queues the plots and every
    step_generation() call fills BUILDING_BATCH of them.
    """
    def __init__(self, map_size, params, graph, rng=None):
        self.MAP_WIDTH, self.HEIGHT = map_size
        self.params = params
        self.graph = graph
        self.rng = rng or random.Random()
        self.reset()

    def _p(self, key, default=None): return self.params.get(key, default)

    def reset(self):
        self.buildings = []
        self.courtyards = []
        self.grid = SpatialHash(GRID_CELL)
        self.last_step_ids = set()
        self._next = 0
        self._queue = []
        self._cursor = 0
        self.active = False

    def clear(self): self.reset()

    # ---------------- chunked driver ----------------

    def start_generation(self, plots):
        self.reset()
        self._queue = list(plots)
        self.active = bool(self._queue)
        if self._p("VERBOSE"): print("[Buildings] start,", len(self._queue), "plots")

    def is_generation_active(self): return self.active

    def step_generation(self):
        """Fill the next batch of plots. Returns True while plots remain."""
        if not self.active: return False
        self.last_step_ids = set()
        for _ in range(int(self._p("BUILDING_BATCH", 3))):
            if self._cursor >= len(self._queue):
                self.active = False; break
            self.fill_plot(self._queue[self._cursor])
            self._cursor += 1
        if self._cursor >= len(self._queue):
            self.active = False
        if not self.active and self._p("VERBOSE"):
            print("[Buildings] done:", len(self.buildings), "buildings,", len(self.courtyards), "courtyards")
        return self.active

    # ---------------- per plot ----------------

    def frontage_segments(self, plot):
        g = self.graph; out = []
        for eid in plot.frontage:
            e = g.edges.get(eid)
            if e is None: continue
            a = g.nodes.get(e.u); b = g.nodes.get(e.v)
            if a is not None and b is not None: out.append((a.pos, b.pos, eid))
        return out

    def plan_plot(self, plot, rng):
        """Subdivide and trim one plot. Returns (building polys, courtyard polys), unchecked for collisions."""
        solid = []; open_ = []
        if not plot.points or len(plot.points) < 3: return solid, open_
        roads = self.frontage_segments(plot)
        min_area = self._p("MIN_BUILDING_AREA", 64); max_area = self._p("MAX_BUILDING_AREA", 625)
        fixed = self._p("FIXED_BUILDING_DEPTH", 15)
        min_angle = self._p("MIN_ANGLE", 30)
        for lot in self.smart_subdivide(ensure_ccw(plot.points), roads, rng):
            area = polygon_area(lot)
            if area < min_area/2: continue
            touching = self.touching_segments(lot, roads, TOUCH_TOL)
            if not touching:
                if plot.is_enclosed: open_.append(lot)
                continue
            corner = len({t[2] for t in touching}) > 1
            shape = lot; scraps = []
            if fixed > 0 and (not corner or area > max_area):
                shape, scraps = self.trim_lot(lot, touching, fixed)
            shape = remove_collinear(shape, SHAPE_TOL)
            if polygon_area(shape) > min_area and validate_polygon(shape, min_area, math.inf, 0.0, min_angle)[0]:
                solid.append(shape)
            for s in scraps:
                s = remove_collinear(s, SHAPE_TOL)
                if len(s) >= 3 and polygon_area(s) > min_area: open_.append(s)
        return solid, open_

    def fill_plot(self, plot):
        solid, open_ = self.plan_plot(plot, self.rng)
        placed = 0
        for poly in solid:
            if self.add_building(poly, True) is not None: placed += 1
        for poly in open_:
            self.add_building(poly, False)
        return placed

    def can_fit_building(self, plot):
        """Dry run of plan_plot with a generator seeded by the plot id; nothing is stored."""
        solid, _ = self.plan_plot(plot, random.Random(plot.id))
        return bool(solid)

    # ---------------- geometry ----------------

    def smart_subdivide(self, poly, roads, rng, depth=0, out=None):
        """Recursive half-plane partition into lots; cuts run across the nearest road when one is close."""
        if out is None: out = []
        if depth > MAX_DEPTH:
            out.append(poly); return out
        area = polygon_area(poly)
        if area < self._p("MAX_BUILDING_AREA", 625)*LOT_AREA_FACTOR:
            out.append(poly); return out
        box = obb(poly)
        best = None; best_d = math.inf
        for a, b, _ in roads:
            d,_,_ = point_seg_dist(box.center, a, b)
            if d < best_d and (a[0] != b[0] or a[1] != b[1]): best, best_d = (a, b), d
        if best is not None and best_d < max(box.width, box.length):
            axis = norm(sub(best[1], best[0]))
        elif box.length > box.width:
            axis = box.axis
        else:
            axis = box.perp
        off = (rng.random()-0.5) * box.length*0.2*self._p("BUILDING_IRREGULARITY", 0.2)
        pt = (box.center[0] + axis[0]*off, box.center[1] + axis[1]*off)
        for part in split_polygon(poly, pt, axis):
            if len(part) > 2 and polygon_area(part) > FRAGMENT_FLOOR:
                self.smart_subdivide(part, roads, rng, depth+1, out)
        return out

    def touching_segments(self, lot, roads, tol):
        box = pad_rect(poly_aabb(lot), tol); out = []
        for a, b, eid in roads:
            if not rects_overlap(box, (min(a[0],b[0]), min(a[1],b[1]), abs(b[0]-a[0]), abs(b[1]-a[1]))): continue
            for p in lot:
                if point_seg_dist(p, a, b)[0] < tol:
                    out.append((a, b, eid)); break
        return out

    def trim_lot(self, poly, segments, depth):
        """Cut the lot at depth behind each touching road, nearest road first. Returns (kept, scraps)."""
        current = poly; scraps = []
        c0 = centroid(poly)
        for a, b, _ in sorted(segments, key=lambda s: point_seg_dist(c0, s[0], s[1])[0]):
            if len(current) < 3: break
            nrm = left_normal(norm(sub(b, a)))
            mid = ((a[0]+b[0])*0.5, (a[1]+b[1])*0.5)
            if dot(nrm, sub(centroid(current), mid)) < 0: nrm = (-nrm[0], -nrm[1])
            cut = (mid[0]+nrm[0]*depth, mid[1]+nrm[1]*depth)
            front, back = split_polygon(current, cut, nrm)
            if len(front) < 3 or len(back) < 3: continue
            # back is the road side of the cut
            current = back; scraps.append(front)
        return current, scraps

    # ---------------- placement ----------------

    def collides(self, poly, test_points=None):
        test = test_points or shrink_polygon(poly, COLLISION_INSET) or poly
        box = poly_aabb(poly)
        near = []; self.grid.query(box, near)
        for other in near:
            if polygons_overlap(test, other.test_points, poly_aabb(test), None): return True
        return False

    def add_building(self, points, solid=True):
        """Store a footprint (solid) or courtyard. Solid footprints that overlap an existing one are dropped."""
        b = Building(f"{'b' if solid else 'c'}_{self._next}", list(points))
        if solid:
            if self.collides(b.points, b.test_points): return None
            self.buildings.append(b)
            self.grid.insert(b.aabb, b)
        else:
            self.courtyards.append(b)
        self._next += 1
        self.last_step_ids.add(b.id)
        return b

    def draw(self, screen, world_to_screen, cam_zoom):
        import pygame
        for c in self.courtyards:
            pts = [world_to_screen(p) for p in c.points]
            if len(pts) >= 3: pygame.draw.polygon(screen, COURTYARD_FILL, pts)
        shadow_offset = (2, 2); shadow_color=(150,150,150)
        for b in self.buildings:
            pts = [world_to_screen(p) for p in b.points]
            if len(pts) < 3: continue
            sh = [(x+shadow_offset[0], y+shadow_offset[1]) for (x,y) in pts]
            pygame.draw.polygon(screen, shadow_color, sh)
            pygame.draw.polygon(screen, NEW_FILL if b.id in self.last_step_ids else HOUSE_FILL, pts)
            pygame.draw.polygon(screen, HOUSE_STROKE, pts, max(1,int(cam_zoom)))
