import math

# Polygons are lists of (x, y) tuples. Canonical winding is positive signed
# area (shoelace), called CCW throughout.

EPS = 1e-9

def dot(a,b): return a[0]*b[0] + a[1]*b[1]
def cross(a,b): return a[0]*b[1] - a[1]*b[0]
def sub(a,b): return (a[0]-b[0], a[1]-b[1])
def add(a,b): return (a[0]+b[0], a[1]+b[1])
def mul(v,s): return (v[0]*s, v[1]*s)
def length(v): return math.hypot(v[0], v[1])
def dist(a,b): return math.hypot(a[0]-b[0], a[1]-b[1])
def left_normal(v): return (-v[1], v[0])

def norm(v, default=(1.0, 0.0)):
    l = math.hypot(v[0], v[1])
    return default if l < EPS else (v[0]/l, v[1]/l)

def wrap_angle(a):
    while a > math.pi: a -= 2*math.pi
    while a < -math.pi: a += 2*math.pi
    return a

def seg_intersection(a1, a2, b1, b2):
    (x1,y1),(x2,y2),(x3,y3),(x4,y4) = a1,a2,b1,b2
    den = (x1-x2)*(y3-y4) - (y1-y2)*(x3-x4)
    if abs(den) < 1e-9:
        return (False, None, None, None)
    t = ((x1-x3)*(y3-y4)-(y1-y3)*(x3-x4)) / den
    u = ((x1-x3)*(y1-y2)-(y1-y3)*(x1-x2)) / den
    if -1e-6 <= t <= 1+1e-6 and -1e-6 <= u <= 1+1e-6:
        Px = x1 + t*(x2-x1); Py = y1 + t*(y2-y1)
        return (True, (Px, Py), t, u)
    return (False, None, None, None)

def segments_cross(a1, a2, b1, b2, tol=1e-6):
    """True only for a crossing strictly inside both segments (shared endpoints do not count)."""
    hit, _, t, u = seg_intersection(a1, a2, b1, b2)
    return hit and tol < t < 1-tol and tol < u < 1-tol

def line_intersection(p1, p2, p3, p4):
    """Intersection of the infinite lines p1-p2 and p3-p4, or None when parallel."""
    d1 = sub(p2, p1); d2 = sub(p4, p3)
    c = cross(d1, d2)
    if abs(c) < 1e-4: return None
    t = cross(sub(p3, p1), d2) / c
    return (p1[0] + t*d1[0], p1[1] + t*d1[1])

def point_seg_dist(p, a, b):
    ap = sub(p, a); ab = sub(b, a); ab2 = dot(ab, ab)
    if ab2 == 0: return (math.hypot(*ap), a, 0.0)
    t = max(0.0, min(1.0, dot(ap,ab)/ab2))
    proj = add(a, mul(ab, t))
    return (math.hypot(p[0]-proj[0], p[1]-proj[1]), proj, t)

def point_line_dist(p, a, b):
    """Distance from p to the infinite line through a and b."""
    ab = sub(b, a); l = length(ab)
    if l < EPS: return dist(p, a)
    return abs(cross(ab, sub(p, a))) / l

def seg_aabb(a,b):
    minx, miny = min(a[0],b[0]), min(a[1],b[1])
    maxx, maxy = max(a[0],b[0]), max(a[1],b[1])
    return (minx, miny, maxx-minx, maxy-miny)

def poly_aabb(poly):
    xs = [p[0] for p in poly]; ys = [p[1] for p in poly]
    return (min(xs), min(ys), max(xs)-min(xs), max(ys)-min(ys))

def pad_rect(rect, pad):
    return (rect[0]-pad, rect[1]-pad, rect[2]+pad*2, rect[3]+pad*2)

def rects_overlap(a, b):
    ax,ay,aw,ah = a; bx,by,bw,bh = b
    return not (ax+aw<bx or bx+bw<ax or ay+ah<by or by+bh<ay)

def point_in_poly(pt, poly):
    x,y = pt; inside = False; n=len(poly)
    for i in range(n):
        x1,y1 = poly[i]; x2,y2 = poly[(i+1)%n]
        if (y1>y)!=(y2>y):
            xinters = (x2-x1)*(y-y1)/(y2-y1) + x1
            if x < xinters: inside = not inside
    return inside

def segment_intersects_polygon(a, b, poly):
    if point_in_poly(a, poly) or point_in_poly(b, poly): return True
    n = len(poly)
    for i in range(n):
        c = poly[i]; d = poly[(i+1)%n]
        hit,_,_,_ = seg_intersection(a,b,c,d)
        if hit: return True
    return False

# ---------------- polygon measures ----------------

def signed_area(poly):
    a = 0.0; n = len(poly)
    for i in range(n):
        x1,y1 = poly[i]; x2,y2 = poly[(i+1)%n]
        a += x1*y2 - x2*y1
    return 0.5*a

def polygon_area(poly):
    if len(poly) < 3: return 0.0
    return abs(signed_area(poly))

def centroid(poly):
    """Vertex average; (0, 0) for an empty list."""
    if not poly: return (0.0, 0.0)
    n = len(poly)
    return (sum(p[0] for p in poly)/n, sum(p[1] for p in poly)/n)

def ensure_ccw(poly):
    return list(poly) if signed_area(poly) >= 0 else list(reversed(poly))

def is_simple(poly):
    """True when no two non-adjacent edges touch or cross."""
    n = len(poly)
    if n < 3: return False
    for i in range(n):
        a1 = poly[i]; a2 = poly[(i+1)%n]
        for j in range(i+2, n):
            if i == 0 and j == n-1: continue
            hit,_,_,_ = seg_intersection(a1, a2, poly[j], poly[(j+1)%n])
            if hit: return False
    return True

def min_edge_length(poly):
    if len(poly) < 2: return 0.0
    return min(dist(poly[i], poly[(i+1)%len(poly)]) for i in range(len(poly)))

def min_interior_angle(poly):
    """Smallest corner angle in degrees, measured as the unsigned angle between neighbours."""
    n = len(poly)
    if n < 3: return 0.0
    best = 180.0
    for i in range(n):
        prev = poly[i-1]; curr = poly[i]; nxt = poly[(i+1)%n]
        v1 = sub(prev, curr); v2 = sub(nxt, curr)
        l1 = length(v1); l2 = length(v2)
        if l1 < 1e-3 or l2 < 1e-3: continue
        c = max(-1.0, min(1.0, dot(v1, v2)/(l1*l2)))
        best = min(best, math.degrees(math.acos(c)))
    return best

def validate_polygon(poly, min_area, max_area, min_edge, min_angle):
    """Returns (valid, area, min_edge_found, min_angle_found)."""
    if not poly or len(poly) < 3:
        return (False, 0.0, 0.0, 0.0)
    area = polygon_area(poly); me = min_edge_length(poly); ma = min_interior_angle(poly)
    valid = min_area <= area <= max_area and me >= min_edge and ma >= min_angle
    return (valid, area, me, ma)

class OBB:
    __slots__ = ("length", "width", "axis", "center")
    def __init__(self, length, width, axis, center):
        self.length=length; self.width=width; self.axis=axis; self.center=center
    @property
    def perp(self): return left_normal(self.axis)

def obb(poly):
    """Bounding box aligned to the polygon's longest edge."""
    best = 0.0; axis = (1.0, 0.0)
    n = len(poly)
    for i in range(n):
        a = poly[i]; b = poly[(i+1)%n]
        d = dist(a, b)
        if d > best:
            best = d; axis = ((b[0]-a[0])/d, (b[1]-a[1])/d)
    perp = left_normal(axis)
    ls = [dot(p, axis) for p in poly]; ws = [dot(p, perp) for p in poly]
    if not ls:
        return OBB(0.0, 0.0, axis, (0.0, 0.0))
    ml = (min(ls)+max(ls))*0.5; mw = (min(ws)+max(ws))*0.5
    center = (axis[0]*ml + perp[0]*mw, axis[1]*ml + perp[1]*mw)
    return OBB(max(ls)-min(ls), max(ws)-min(ws), axis, center)

# ---------------- polygon operations ----------------

def shrink_polygon(poly, distance, max_shift=5.0):
    """Offset every edge inward by distance and rejoin consecutive offset edges.

    Corners whose new position lands further than max_shift*distance from the
    original corner are pulled back along the corner-to-intersection
    direction. Returns [] when the result collapses or flips. Winding is kept.
    """
    n = len(poly)
    if n < 3: return []
    sa = signed_area(poly)
    if abs(sa) < EPS: return []
    sign = 1.0 if sa > 0 else -1.0
    offset_edges = []; corners = []
    for i in range(n):
        p1 = poly[i]; p2 = poly[(i+1)%n]
        d = sub(p2, p1); l = length(d)
        if l < 1e-3: continue
        nx, ny = (-d[1]/l*sign, d[0]/l*sign)
        offset_edges.append(((p1[0]+nx*distance, p1[1]+ny*distance), (p2[0]+nx*distance, p2[1]+ny*distance)))
        corners.append(p2)
    m = len(offset_edges)
    if m < 3: return []
    limit = max_shift * abs(distance)
    out = []
    for i in range(m):
        e1 = offset_edges[i]; e2 = offset_edges[(i+1)%m]
        corner = corners[i]
        P = line_intersection(e1[0], e1[1], e2[0], e2[1])
        if P is None:
            # collinear neighbours: the shared offset endpoint is exact
            P = e1[1]
        moved = dist(P, corner)
        if moved > limit:
            s = limit / moved
            P = (corner[0] + (P[0]-corner[0])*s, corner[1] + (P[1]-corner[1])*s)
        out.append(P)
    if len(out) < 3: return []
    ra = signed_area(out)
    if ra*sign <= EPS or abs(ra) >= abs(sa): return []
    return out

def split_polygon(poly, plane_pt, plane_norm):
    """Cut poly by the line through plane_pt with normal plane_norm.

    Returns (front, back): front holds the side the normal points to. Both
    keep the input winding.
    """
    front = []; back = []; n = len(poly)
    for i in range(n):
        curr = poly[i]; nxt = poly[(i+1)%n]
        d1 = dot(sub(curr, plane_pt), plane_norm)
        d2 = dot(sub(nxt, plane_pt), plane_norm)
        if d1 >= 0: front.append(curr)
        if d1 <= 0: back.append(curr)
        if (d1 > 0 and d2 < 0) or (d1 < 0 and d2 > 0):
            t = d1 / (d1 - d2)
            P = (curr[0] + t*(nxt[0]-curr[0]), curr[1] + t*(nxt[1]-curr[1]))
            front.append(P); back.append(P)
    return front, back

def douglas_peucker(points, tolerance):
    if len(points) <= 2: return list(points)
    first = points[0]; last = points[-1]
    best = 0.0; idx = 0
    for i in range(1, len(points)-1):
        d,_,_ = point_seg_dist(points[i], first, last)
        if d > best: best = d; idx = i
    if best > tolerance:
        left = douglas_peucker(points[:idx+1], tolerance)
        right = douglas_peucker(points[idx:], tolerance)
        return left[:-1] + right
    return [first, last]

def simplify_polygon(poly, tolerance):
    """Ramer-Douglas-Peucker on a closed ring, anchored at vertex 0 and the vertex farthest from it."""
    n = len(poly)
    if n <= 3: return list(poly)
    far = max(range(n), key=lambda i: dist(poly[0], poly[i]))
    if far == 0: return list(poly)
    a = douglas_peucker(poly[:far+1], tolerance)
    b = douglas_peucker(poly[far:] + [poly[0]], tolerance)
    out = a[:-1] + b[:-1]
    return out if len(out) >= 3 else list(poly)

def remove_collinear(poly, tolerance):
    """Drop vertices lying within tolerance of the line through their kept predecessor and next vertex."""
    if len(poly) <= 3: return list(poly)
    out = [poly[0]]; prev = 0; n = len(poly)
    for i in range(1, n):
        if point_line_dist(poly[i], poly[prev], poly[(i+1)%n]) > tolerance:
            out.append(poly[i]); prev = i
    return out if len(out) >= 3 else list(poly)

def polygons_overlap(a, b, aabb_a=None, aabb_b=None):
    """Edge crossing or vertex containment in either direction, behind an AABB gate."""
    if len(a) < 3 or len(b) < 3: return False
    if not rects_overlap(aabb_a or poly_aabb(a), aabb_b or poly_aabb(b)):
        return False
    na = len(a); nb = len(b)
    for i in range(na):
        a1 = a[i]; a2 = a[(i+1)%na]
        for j in range(nb):
            if segments_cross(a1, a2, b[j], b[(j+1)%nb]): return True
    for p in a:
        if point_in_poly(p, b): return True
    for p in b:
        if point_in_poly(p, a): return True
    return False

# ---------------- curves & noise ----------------

def catmull_rom(p0, p1, p2, p3, t):
    t2 = t*t; t3 = t2*t
    x = 0.5*((2*p1[0]) + (-p0[0]+p2[0])*t + (2*p0[0]-5*p1[0]+4*p2[0]-p3[0])*t2 + (-p0[0]+3*p1[0]-3*p2[0]+p3[0])*t3)
    y = 0.5*((2*p1[1]) + (-p0[1]+p2[1])*t + (2*p0[1]-5*p1[1]+4*p2[1]-p3[1])*t2 + (-p0[1]+3*p1[1]-3*p2[1]+p3[1])*t3)
    return (x, y)

def hash01(ix, iy, seed=0):
    return ((ix*2246822519 ^ iy*3266489917 ^ seed) & 0xffffffff)/4294967296.0
