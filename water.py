import random, math
from geometry import (point_in_poly, point_seg_dist, poly_aabb, catmull_rom, segments_cross, seg_aabb,
                      rects_overlap, segment_intersects_polygon)

WATER_COLOR = (120, 180, 255)
WATER_EDGE  = (80, 120, 180)

class ValueNoise1D:
    """Cosine-interpolated value noise over seeded anchors."""
    def __init__(self, rng, size=256):
        self.size = size
        self.anchors = [rng.uniform(-1.0, 1.0) for _ in range(size)]

    def get(self, x):
        i = int(math.floor(x)); f = x - i
        a = self.anchors[i % self.size]; b = self.anchors[(i+1) % self.size]
        mu = (1 - math.cos(f*math.pi)) * 0.5
        return a*(1-mu) + b*mu

    def fbm(self, x, octaves):
        t = 0.0; amp = 1.0; freq = 1.0; total = 0.0
        for _ in range(octaves):
            t += self.get(x*freq)*amp; total += amp
            amp *= 0.5; freq *= 2.0
        return t / total

class WaterSystem:
    """Water bodies (river, coast, lake) as closed polygons plus the two predicates growth relies on."""

    def __init__(self, map_size, params, rng=None):
        self.MAP_WIDTH, self.HEIGHT = map_size
        self.params = params
        self.rng = rng or random.Random()
        self.bodies = []
        self.spine = []
        self.noise = ValueNoise1D(self.rng)

    def _p(self, key, default=None):
        return self.params.get(key, default)

    def reset(self):
        self.bodies = []
        self.spine = []

    def generate(self):
        self.reset()
        kind = self._p("WATER_FEATURE", "NONE")
        if kind == "NONE": return
        self.noise = ValueNoise1D(self.rng)
        if kind == "RIVER":
            self.generate_river()
        elif kind == "COAST":
            self.generate_coast()
            if self.rng.random() < 0.5: self.generate_river_into_water()
        elif kind == "LAKE":
            self.generate_lake()
            if self.rng.random() < 0.6: self.generate_river_into_water()
        if self._p("VERBOSE"):
            print("[Water]", kind, "bodies:", len(self.bodies))

    def add_body(self, kind, poly):
        self.bodies.append({"type": kind, "poly": list(poly), "aabb": poly_aabb(poly)})

    # ---------------- predicates ----------------

    def is_point_in_water(self, pt):
        x, y = pt
        for b in self.bodies:
            bx,by,bw,bh = b["aabb"]
            if x < bx or y < by or x > bx+bw or y > by+bh: continue
            if point_in_poly(pt, b["poly"]): return True
        return False

    def segment_in_water(self, a, b):
        """True if segment a-b touches or crosses any water body."""
        box = seg_aabb(a, b)
        for body in self.bodies:
            if not rects_overlap(box, body["aabb"]): continue
            if segment_intersects_polygon(a, b, body["poly"]): return True
        return False

    def distance_to_water(self, pt):
        best = math.inf
        for b in self.bodies:
            poly = b["poly"]; n = len(poly)
            for i in range(n):
                d,_,_ = point_seg_dist(pt, poly[i], poly[(i+1)%n])
                if d < best: best = d
        return best

    # ---------------- generators ----------------

    def _natural_path(self, start, end, segments, amp_scale=0.2, straight_tail=False):
        dx = end[0]-start[0]; dy = end[1]-start[1]
        d = math.hypot(dx, dy) or 1.0
        nx, ny = -dy/d, dx/d
        seed = self.rng.random()*200.0
        pts = []
        for i in range(segments+1):
            t = i/segments
            env = math.sin(t*math.pi)
            if straight_tail:
                if t > 0.85: env = 0.0
                elif t > 0.7: env *= (0.85-t)/0.15
            off = self.noise.fbm(t*3 + seed, 2) * d * amp_scale * env
            pts.append((start[0]+dx*t + nx*off, start[1]+dy*t + ny*off))
        return pts

    def _interpolate(self, pts, segments):
        if len(pts) < 2: return list(pts)
        out = [pts[0]]; n = len(pts)
        for i in range(n-1):
            p0 = pts[max(0, i-1)]; p1 = pts[i]; p2 = pts[min(n-1, i+1)]; p3 = pts[min(n-1, i+2)]
            for j in range(1, segments+1):
                out.append(catmull_rom(p0, p1, p2, p3, j/segments))
        return out

    def _resample(self, pts, step):
        if len(pts) < 2: return list(pts)
        out = [pts[0]]; carry = 0.0
        for i in range(1, len(pts)):
            a = pts[i-1]; b = pts[i]
            seg = math.hypot(b[0]-a[0], b[1]-a[1])
            if seg <= 0: continue
            pos = step - carry
            while pos <= seg:
                t = pos/seg
                out.append((a[0]+(b[0]-a[0])*t, a[1]+(b[1]-a[1])*t))
                pos += step
            carry = seg - (pos - step)
        out.append(pts[-1])
        return out

    def _smooth(self, pts, passes):
        for _ in range(passes):
            if len(pts) < 3: break
            nxt = [pts[0]]
            for i in range(1, len(pts)-1):
                nxt.append(((pts[i-1][0]+pts[i][0]+pts[i+1][0])/3.0, (pts[i-1][1]+pts[i][1]+pts[i+1][1])/3.0))
            nxt.append(pts[-1]); pts = nxt
        return pts

    def _extrude(self, line, base_width):
        n = len(line)
        widths = [base_width*(1.0 + self.noise.fbm(i*0.05 + 50.0, 2)*0.5) for i in range(n)]
        for _ in range(4 if n > 2 else 0):
            widths = [widths[0]] + [(widths[i-1]+widths[i]+widths[i+1])/3.0 for i in range(1, n-1)] + [widths[-1]]
        left = []; right = []
        for i in range(n):
            p = line[i]; a = line[max(0, i-2)]; b = line[min(n-1, i+2)]
            dx = b[0]-a[0]; dy = b[1]-a[1]; L = math.hypot(dx, dy) or 1.0
            nx, ny = -dy/L, dx/L; hw = widths[i]*0.5
            left.append((p[0]+nx*hw, p[1]+ny*hw))
            right.append((p[0]-nx*hw, p[1]-ny*hw))
        return left + right[::-1]

    def generate_river(self):
        w, h = self.MAP_WIDTH, self.HEIGHT; rng = self.rng
        width = self._p("RIVER_WIDTH", 30) * (0.8 + rng.random()*0.4)
        pad = 150
        if rng.random() > 0.5:
            a = (-pad, h*(0.2+rng.random()*0.6)); b = (w+pad, h*(0.2+rng.random()*0.6))
        else:
            a = (w*(0.2+rng.random()*0.6), -pad); b = (w*(0.2+rng.random()*0.6), h+pad)
        if rng.random() > 0.5: a, b = b, a
        spine = self._interpolate(self._natural_path(a, b, 15), 4)
        spine = self._smooth(self._resample(spine, 10.0), 4)
        self.spine = spine
        self.add_body("RIVER", self._extrude(spine, width))
        self.add_tributary(spine, width)

    def _edge_exit(self, origin, ang):
        """Point 150 beyond where a ray from origin leaves the map."""
        w, h = self.MAP_WIDTH, self.HEIGHT
        dx = math.cos(ang); dy = math.sin(ang); t = math.inf
        if dx > 1e-3: t = min(t, (w-origin[0])/dx)
        if dx < -1e-3: t = min(t, -origin[0]/dx)
        if dy > 1e-3: t = min(t, (h-origin[1])/dy)
        if dy < -1e-3: t = min(t, -origin[1]/dy)
        if t == math.inf or t < 0: return None
        return (origin[0]+(t+150)*dx, origin[1]+(t+150)*dy)

    def add_tributary(self, spine, parent_width):
        if len(spine) < 20: return False
        rng = self.rng
        for _ in range(3):
            idx = int(len(spine)*(0.2 + rng.random()*0.6))
            join = spine[idx]; p0 = spine[max(0, idx-5)]; p1 = spine[min(len(spine)-1, idx+5)]
            ang = math.atan2(p1[1]-p0[1], p1[0]-p0[0]) + math.pi/2*rng.choice((1, -1)) + (rng.random()-0.5)*0.6
            start = self._edge_exit(join, ang)
            if start is None: continue
            trib = self._natural_path(start, join, 15, amp_scale=0.15, straight_tail=True)
            crossed = False
            for i in range(len(trib)-5):
                for j in range(len(spine)-1):
                    if segments_cross(trib[i], trib[i+1], spine[j], spine[j+1], tol=0.0):
                        crossed = True; break
                if crossed: break
            if crossed: continue
            trib = self._smooth(self._resample(trib, 5.0), 3)
            self.add_body("RIVER", self._extrude(trib, parent_width*0.4))
            return True
        return False

    def generate_river_into_water(self):
        if not self.bodies: return
        w, h = self.MAP_WIDTH, self.HEIGHT; rng = self.rng
        target = self.bodies[0]["poly"]
        end = target[rng.randrange(len(target))]
        cx = sum(p[0] for p in target)/len(target); cy = sum(p[1] for p in target)/len(target)
        dx, dy = cx-end[0], cy-end[1]; L = math.hypot(dx, dy) or 1.0
        end = (end[0]+dx/L*100, end[1]+dy/L*100)
        dl, dr, dt, db = end[0], w-end[0], end[1], h-end[1]
        far = max(dl, dr, dt, db)
        if far == dl: start = (-150, rng.random()*h)
        elif far == dr: start = (w+150, rng.random()*h)
        elif far == dt: start = (rng.random()*w, -150)
        else: start = (rng.random()*w, h+150)
        spine = self._interpolate(self._natural_path(start, end, 15), 4)
        spine = self._smooth(self._resample(spine, 10.0), 3)
        self.spine = spine
        self.add_body("RIVER", self._extrude(spine, self._p("RIVER_WIDTH", 30)))

    def generate_coast(self):
        w, h = self.MAP_WIDTH, self.HEIGHT
        side = self.rng.randrange(4)
        disp = min(w, h)*0.2; num = 25
        # (edge start, edge end, inward normal)
        a, b, nrm = {0: ((0,0),(0,h),(1,0)), 1: ((w,0),(w,h),(-1,0)),
                     2: ((0,0),(w,0),(0,1)), 3: ((0,h),(w,h),(0,-1))}[side]
        pts = [a]
        for i in range(num+1):
            t = i/num
            env = math.sin(t*math.pi)
            d = disp*env*(0.4 + self.noise.fbm(t*6 + 10.0, 3))
            px = a[0]+(b[0]-a[0])*t; py = a[1]+(b[1]-a[1])*t
            pts.append((px+nrm[0]*d, py+nrm[1]*d))
        pts.append(b)
        self.add_body("COAST", self._interpolate(pts, 3))

    def generate_lake(self):
        w, h = self.MAP_WIDTH, self.HEIGHT; rng = self.rng
        cx = w*(0.3+rng.random()*0.4); cy = h*(0.3+rng.random()*0.4)
        rad = min(w, h)*0.15; steps = 30; pts = []
        for i in range(steps):
            a = i/steps*math.pi*2
            r = rad*(0.8 + self.noise.fbm(math.cos(a)+math.sin(a)+rng.random()+20.0, 3)*0.5)
            pts.append((cx+math.cos(a)*r, cy+math.sin(a)*r))
        ring = self._interpolate(pts + [pts[0]], 3)
        self.add_body("LAKE", ring[:-1])

    def draw(self, screen, world_to_screen, cam_zoom):
        import pygame
        for b in self.bodies:
            poly = [world_to_screen(p) for p in b["poly"]]
            if len(poly) < 3: continue
            pygame.draw.polygon(screen, WATER_COLOR, poly)
            pygame.draw.polygon(screen, WATER_EDGE, poly, max(1,int(2*cam_zoom)))
