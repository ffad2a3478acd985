import math, random
from geometry import point_in_poly, point_seg_dist, catmull_rom, wrap_angle, hash01, poly_aabb

BOUNDARY_COLOR = (170, 120, 90)

class CityBoundary:
    """City limit polygon around a centre, plus the urban density field growth reads."""

    def __init__(self, map_size, params, water=None, rng=None):
        self.MAP_WIDTH, self.HEIGHT = map_size
        self.params = params
        self.water = water
        self.rng = rng or random.Random()
        self.center = (self.MAP_WIDTH*0.5, self.HEIGHT*0.5)
        self.radius = 0.0
        self.poly = []
        self.aabb = None
        self.noise_seed = 0

    def _p(self, key, default=None):
        return self.params.get(key, default)

    def reset(self):
        self.poly = []; self.aabb = None

    def initialize(self, center=None):
        self.center = tuple(center) if center is not None else self.find_start_point()
        self.radius = min(self.MAP_WIDTH, self.HEIGHT) / 2 * self._p("CITY_SIZE", 0.5)
        self.noise_seed = self.rng.randrange(1 << 30)
        self.generate()

    # ---------------- predicates ----------------

    def is_point_inside_city(self, pt):
        if len(self.poly) < 3:
            return math.hypot(pt[0]-self.center[0], pt[1]-self.center[1]) <= self.radius
        x,y = pt; bx,by,bw,bh = self.aabb
        if x < bx or y < by or x > bx+bw or y > by+bh: return False
        return point_in_poly(pt, self.poly)

    def distance_to_boundary(self, pt):
        if len(self.poly) < 3:
            return abs(math.hypot(pt[0]-self.center[0], pt[1]-self.center[1]) - self.radius)
        n = len(self.poly)
        return min(point_seg_dist(pt, self.poly[i], self.poly[(i+1)%n])[0] for i in range(n))

    def get_urban_density(self, pt):
        """1.0 at the centre, about 0.7 at the limit, then fading to 0 across the outer falloff band."""
        dc = math.hypot(pt[0]-self.center[0], pt[1]-self.center[1])
        if self.is_point_inside_city(pt):
            return max(0.7, 1.0 - 0.3*min(1.0, dc/max(1e-6, self.radius)))
        band = self._p("OUTER_CITY_FALLOFF", 0.2) * min(self.MAP_WIDTH, self.HEIGHT)
        if band <= 0: return 0.0
        jitter = hash01(int(pt[0]//20), int(pt[1]//20), self.noise_seed) - 0.5
        band *= max(0.1, 1.0 + self._p("OUTER_CITY_RANDOMNESS", 0.5)*jitter)
        t = self.distance_to_boundary(pt) / band
        if t >= 1.0: return 0.0
        return 0.7*(1.0-t)*(1.0-t)

    # ---------------- generation ----------------

    def generate(self):
        rng = self.rng; w, h = self.MAP_WIDTH, self.HEIGHT
        suburbs = [(rng.random()*math.pi*2, 0.3+rng.random()*0.5, 0.15+rng.random()*0.2)
                   for _ in range(rng.randrange(4))]
        dents = [(rng.random()*math.pi*2, 0.15+rng.random()*0.25, 0.1+rng.random()*0.15)
                 for _ in range(rng.randrange(3))]
        pts = []; offset = 0.0; vel = 0.0; n = 24
        for i in range(n):
            ang = math.pi*2/n*i
            vel = (vel + (rng.random()-0.5)*0.15) * 0.75
            offset = max(-0.25, min(0.25, offset + vel))
            mult = 0.85 + offset + rng.random()*0.1
            for a, size, width in suburbs:
                d = abs(wrap_angle(ang - a)); aw = width*math.pi
                if d < aw: mult += math.cos(d/aw*math.pi/2)*size
            for a, depth, width in dents:
                d = abs(wrap_angle(ang - a)); aw = width*math.pi
                if d < aw: mult -= math.cos(d/aw*math.pi/2)*depth
            r = self.radius*max(0.4, mult)
            x = min(w-20, max(20, self.center[0] + math.cos(ang)*r))
            y = min(h-20, max(20, self.center[1] + math.sin(ang)*r))
            pts.append((x, y))
        out = []
        for i in range(n):
            p0 = pts[(i-1) % n]; p1 = pts[i]; p2 = pts[(i+1) % n]; p3 = pts[(i+2) % n]
            for j in range(4):
                out.append(catmull_rom(p0, p1, p2, p3, j/4))
        self.poly = out
        self.aabb = poly_aabb(out)

    def find_start_point(self):
        """Map centre without water; otherwise a dry point near the shore that sees water in a few directions."""
        w, h = self.MAP_WIDTH, self.HEIGHT
        water = self.water
        if water is None or not water.bodies:
            return (w/2, h/2)
        seg = self._p("SEGMENT_LENGTH", 10)
        ideal = seg*2; far = seg*5; rng = self.rng
        best = None; best_score = -1.0
        for _ in range(200):
            p = (w*0.15 + rng.random()*w*0.7, h*0.15 + rng.random()*h*0.7)
            if water.is_point_in_water(p): continue
            d = water.distance_to_water(p)
            if d > far: continue
            score = 10*(d/ideal) if d < ideal else 10*(1 - (d-ideal)/(far-ideal))
            wet = 0
            for k in range(8):
                a = math.pi*2/8*k
                if water.is_point_in_water((p[0]+math.cos(a)*seg*4, p[1]+math.sin(a)*seg*4)): wet += 1
            score += wet*5
            if 2 <= wet <= 4: score += 15
            if score > best_score:
                best_score = score; best = p
        if best is not None: return best
        for _ in range(100):
            p = (w*0.2 + rng.random()*w*0.6, h*0.2 + rng.random()*h*0.6)
            if not water.is_point_in_water(p): return p
        return (w/2, h/2)

    def draw(self, screen, world_to_screen, cam_zoom):
        import pygame
        if len(self.poly) < 3: return
        pts = [world_to_screen(p) for p in self.poly]
        pygame.draw.lines(screen, BOUNDARY_COLOR, True, pts, max(1,int(1*cam_zoom)))
