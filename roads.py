import math, random
from spatial import SpatialHash
from geometry import segments_cross, seg_aabb, pad_rect, wrap_angle, norm

ROAD_COLOR   = (60, 60, 60)
BRIDGE_COLOR = (150, 95, 45)
NEW_COLOR    = (230, 80, 60)
AGENT_COLOR  = (40, 160, 90)

MAX_BRIDGE_WIDTH   = 60
MIN_BRIDGE_SPACING = 200
BASE_BRIDGE_PROB   = 0.7
BASE_EXIT_PROB     = 0.8
EXIT_PROB_DECAY    = 0.5
FILL_INTERVAL      = 20
RIVER_RELEASE_PROB = 0.1
RING_DEATH_PROB    = 0.05

class Node:
    __slots__=("id","x","y","neighbors")
    def __init__(self, nid, x, y):
        self.id=nid; self.x=x; self.y=y; self.neighbors=[]
    @property
    def pos(self): return (self.x, self.y)
    @property
    def degree(self): return len(self.neighbors)
    def __repr__(self): return f"Node({self.id}, {self.x:.1f}, {self.y:.1f}, deg={len(self.neighbors)})"

class Edge:
    __slots__=("id","u","v","bridge")
    def __init__(self, eid, u, v, bridge=False):
        self.id=eid; self.u=u; self.v=v; self.bridge=bridge
    @property
    def pair(self): return (self.u, self.v) if self.u < self.v else (self.v, self.u)
    def other(self, nid): return self.v if nid == self.u else self.u
    def __repr__(self): return f"Edge({self.id}, {self.u}-{self.v}{', bridge' if self.bridge else ''})"

class Agent:
    __slots__=("pos","heading","node_id","steps_since_branch","role","following_river")
    def __init__(self, pos, heading, node_id, role=None):
        self.pos=pos; self.heading=heading; self.node_id=node_id
        self.steps_since_branch=0; self.role=role; self.following_river=False
    def __repr__(self): return f"Agent(node={self.node_id}, heading={self.heading:.2f}, role={self.role})"

class RoadGraph:
    """Nodes and edges addressed by integer ids, with symmetric adjacency.

    At most one edge per unordered node pair, never a self loop. Node and edge
    spatial indexes are kept in step with every mutation.
    """
    def __init__(self, cell_size=20.0):
        self.cell_size = cell_size
        self.clear()

    def clear(self):
        self.nodes = {}
        self.edges = {}
        self._pairs = {}
        self._next_node = 0; self._next_edge = 0
        self.node_index = SpatialHash(self.cell_size)
        self.edge_index = SpatialHash(self.cell_size*2)

    @property
    def bridge_edge_ids(self):
        return {e.id for e in self.edges.values() if e.bridge}

    def add_node(self, pos):
        n = Node(self._next_node, float(pos[0]), float(pos[1])); self._next_node += 1
        self.nodes[n.id] = n
        self.node_index.insert((n.x, n.y, 0, 0), n.id)
        return n

    def remove_node(self, nid):
        n = self.nodes.get(nid)
        if n is None: return False
        for other in list(n.neighbors):
            eid = self._pairs.get((min(nid, other), max(nid, other)))
            if eid is not None: self._drop_edge(eid)
        self.node_index.remove(nid)
        del self.nodes[nid]
        return True

    def edge_between(self, u, v):
        eid = self._pairs.get((min(u, v), max(u, v)))
        return self.edges.get(eid) if eid is not None else None

    def add_edge(self, u, v, bridge=False):
        """Returns the new Edge, or None for a self loop, a missing node or an existing pair."""
        if u == v or u not in self.nodes or v not in self.nodes: return None
        pair = (min(u, v), max(u, v))
        if pair in self._pairs: return None
        e = Edge(self._next_edge, u, v, bridge); self._next_edge += 1
        self.edges[e.id] = e; self._pairs[pair] = e.id
        self.nodes[u].neighbors.append(v); self.nodes[v].neighbors.append(u)
        self.edge_index.insert(seg_aabb(self.nodes[u].pos, self.nodes[v].pos), e.id)
        return e

    def _drop_edge(self, eid):
        e = self.edges.pop(eid)
        self._pairs.pop(e.pair, None)
        self.edge_index.remove(eid)
        nu = self.nodes.get(e.u); nv = self.nodes.get(e.v)
        if nu is not None and e.v in nu.neighbors: nu.neighbors.remove(e.v)
        if nv is not None and e.u in nv.neighbors: nv.neighbors.remove(e.u)
        return e

    def remove_edge(self, eid):
        """Delete an edge and any endpoint left without neighbours."""
        if eid not in self.edges: return False
        e = self._drop_edge(eid)
        for nid in (e.u, e.v):
            n = self.nodes.get(nid)
            if n is not None and not n.neighbors:
                self.node_index.remove(nid); del self.nodes[nid]
        return True

    def edge_length(self, e):
        a = self.nodes[e.u]; b = self.nodes[e.v]
        return math.hypot(b.x-a.x, b.y-a.y)

    def nearest_node(self, pt, radius, exclude=None):
        """Closest node strictly within radius; ties go to the older node."""
        cand = []; self.node_index.query_point(pt, radius, cand)
        best = None; best_key = None
        for nid in cand:
            if nid == exclude: continue
            n = self.nodes[nid]
            d = math.hypot(n.x-pt[0], n.y-pt[1])
            if d >= radius: continue
            key = (d, nid)
            if best_key is None or key < best_key: best, best_key = n, key
        return best

    def nearest_node_any(self, pt):
        best = None; bd = math.inf
        for n in self.nodes.values():
            d = math.hypot(n.x-pt[0], n.y-pt[1])
            if d < bd: best, bd = n, d
        return best, bd

    def crosses_existing(self, a, b, endpoints=()):
        """True when segment a-b properly crosses an edge that shares none of the given endpoint ids."""
        cand = []; self.edge_index.query(pad_rect(seg_aabb(a, b), 1.0), cand)
        for eid in cand:
            e = self.edges[eid]
            if e.u in endpoints or e.v in endpoints: continue
            if segments_cross(a, b, self.nodes[e.u].pos, self.nodes[e.v].pos):
                return True
        return False

class RoadSystem:
    """Agent-driven road growth over a RoadGraph.

    Each tick advances every agent once: steer, check bounds, city limit and
    water, bridge or follow the shore, snap to nearby nodes, otherwise lay a
    new segment and maybe branch.
    """
    def __init__(self, map_size, params, water, boundary, rng=None, graph=None):
        self.MAP_WIDTH, self.HEIGHT = map_size
        self.params = params
        self.water = water
        self.boundary = boundary
        self.rng = rng or random.Random()
        self.graph = graph or RoadGraph(max(1.0, self._p("SEGMENT_LENGTH", 10)*2))
        self.agents = []
        self.bridge_positions = []
        self.exit_count = 0
        self.tick = 0
        self.last_step_edge_ids = set()

    def _p(self, key, default=None): return self.params.get(key, default)

    def reset(self, start=None):
        self.graph.clear()
        self.agents = []
        self.bridge_positions = []
        self.exit_count = 0
        self.tick = 0
        self.last_step_edge_ids = set()
        start = start if start is not None else self.boundary.center
        node = self.graph.add_node(start)
        self.init_agents(node)
        return node

    def init_agents(self, node):
        strategy = self._p("STRATEGY", "ORGANIC")
        if strategy == "GRID":
            headings = [0, math.pi/2, math.pi, 3*math.pi/2]; role = None
        elif strategy == "RADIAL":
            headings = [math.pi*2/8*i for i in range(8)]; role = "SPOKE"
        else:
            headings = [math.pi*2/3*i for i in range(3)]; role = None
        for h in headings:
            self.agents.append(Agent(node.pos, h, node.id, role))

    def _add_edge(self, u, v, bridge=False):
        e = self.graph.add_edge(u, v, bridge)
        if e is not None: self.last_step_edge_ids.add(e.id)
        return e

    # ---------------- tick ----------------

    def step(self):
        """Advance every agent one tick. Returns the number of edges laid."""
        self.last_step_edge_ids = set()
        if not self.agents: return 0
        self.tick += 1
        spawned = []; alive = []
        for agent in self.agents:
            if self._advance(agent, spawned): alive.append(agent)
        self.agents = alive + spawned
        if self.tick % FILL_INTERVAL == 0 and len(self.graph.nodes) > 20:
            self.fill_empty_areas()
        return len(self.last_step_edge_ids)

    def _steer(self, agent):
        rng = self.rng; heading = agent.heading
        if agent.following_river:
            if rng.random() < RIVER_RELEASE_PROB:
                agent.following_river = False
                return agent.heading + (rng.random()-0.5)*math.pi
            seg = self._p("SEGMENT_LENGTH", 10); x, y = agent.pos
            left = (x + math.cos(heading-math.pi/2)*seg, y + math.sin(heading-math.pi/2)*seg)
            right = (x + math.cos(heading+math.pi/2)*seg, y + math.sin(heading+math.pi/2)*seg)
            wl = self.water.is_point_in_water(left); wr = self.water.is_point_in_water(right)
            if not wl and not wr:
                agent.following_river = False
            elif wl and wr:
                agent.following_river = False
                heading += rng.choice((1, -1))*math.pi/2
            else:
                heading += (-0.1 if wl else 0.1) + rng.uniform(-0.1, 0.1)
            return heading
        strategy = self._p("STRATEGY", "ORGANIC")
        if strategy == "ORGANIC":
            heading += rng.uniform(-0.2, 0.2)
        elif strategy == "RADIAL" and agent.role == "RING":
            cx, cy = self.boundary.center
            to_c = math.atan2(agent.pos[1]-cy, agent.pos[0]-cx)
            t1 = to_c + math.pi/2; t2 = to_c - math.pi/2
            heading = t1 if abs(wrap_angle(agent.heading - t1)) < abs(wrap_angle(agent.heading - t2)) else t2
        return heading

    def _advance(self, agent, spawned):
        g = self.graph; rng = self.rng
        parent = g.nodes.get(agent.node_id)
        if parent is None: return False
        seg = self._p("SEGMENT_LENGTH", 10)
        heading = self._steer(agent)
        nxt = (agent.pos[0] + math.cos(heading)*seg, agent.pos[1] + math.sin(heading)*seg)
        if not (0 <= nxt[0] <= self.MAP_WIDTH and 0 <= nxt[1] <= self.HEIGHT):
            return False

        density = self.boundary.get_urban_density(nxt)
        if self._p("HARD_CITY_LIMIT", False):
            if self.boundary.is_point_inside_city(agent.pos) and not self.boundary.is_point_inside_city(nxt):
                if rng.random() < BASE_EXIT_PROB * EXIT_PROB_DECAY**self.exit_count:
                    agent.steps_since_branch = -1000
                    self.exit_count += 1
                else:
                    return False
        else:
            if rng.random() < 0.01 + (1-density)**3*0.2:
                return False
            if agent.steps_since_branch >= 0 and density < 0.3:
                cut = int((1-density)*2)
                if cut > 0: agent.steps_since_branch = max(0, agent.steps_since_branch - cut)

        wet_next = self.water.is_point_in_water(nxt)
        if wet_next and not self.water.is_point_in_water(agent.pos):
            if self._try_bridge(agent, heading): return True
            shore = self.shore_normal(agent.pos, heading)
            agent.heading = shore + math.pi/2 + rng.choice((0.0, math.pi))
            agent.following_river = True
            return True
        elif wet_next:
            return False

        radius = seg*0.9 if self._p("STRATEGY") == "GRID" else seg*1.4
        snap = g.nearest_node(nxt, radius, exclude=parent.id)
        if snap is not None:
            if not g.crosses_existing(parent.pos, snap.pos, (parent.id, snap.id)):
                self._add_edge(parent.id, snap.id)
            return False

        if g.crosses_existing(parent.pos, nxt, (parent.id,)):
            return False
        node = g.add_node(nxt)
        self._add_edge(parent.id, node.id)
        agent.pos = node.pos; agent.heading = heading; agent.node_id = node.id
        agent.steps_since_branch += 1
        self._branch(agent, node, density, spawned)
        if agent.role == "RING" and rng.random() < RING_DEATH_PROB:
            return False
        return True

    def _branch(self, agent, node, density, spawned):
        rng = self.rng; strategy = self._p("STRATEGY", "ORGANIC")
        bf = self._p("BRANCHING_FACTOR", 0.3)
        roll = rng.random()
        steps = agent.steps_since_branch
        p = 1 - (1 - bf*density)**steps if steps >= 0 else 0.0
        if roll >= p: return
        if strategy == "RADIAL" and agent.role != "SPOKE": return
        agent.steps_since_branch = 0
        if strategy == "ORGANIC":
            turns = [rng.choice((1, -1))*(math.pi/2 + rng.uniform(-0.2, 0.2))]
            role = None
        else:
            first = rng.choice((1, -1))*math.pi/2
            turns = [first]
            if strategy == "GRID":
                if density > 0.7 and rng.random() > 0.5: turns.append(-first)
                role = None
            else:
                if bf > 0.7 and rng.random() < 0.5: turns.append(-first)
                role = "RING"
        for t in turns:
            spawned.append(Agent(node.pos, agent.heading + t, node.id, role))

    # ---------------- water crossing ----------------

    def shore_normal(self, pt, heading):
        """Angle of the shoreline normal closest to heading, from the distance-to-water gradient."""
        h = 1.0; dw = self.water.distance_to_water
        gx = dw((pt[0]+h, pt[1])) - dw((pt[0]-h, pt[1]))
        gy = dw((pt[0], pt[1]+h)) - dw((pt[0], pt[1]-h))
        if not (math.isfinite(gx) and math.isfinite(gy)) or math.hypot(gx, gy) < 1e-6:
            return heading
        gx, gy = norm((gx, gy))
        a1 = math.atan2(-gy, -gx); a2 = a1 + math.pi
        return a1 if abs(wrap_angle(heading - a1)) <= abs(wrap_angle(heading - a2)) else wrap_angle(a2)

    def crossing_width(self, start, angle):
        dx, dy = math.cos(angle), math.sin(angle)
        entered = False; entry = 0
        for d in range(0, MAX_BRIDGE_WIDTH + 20 + 1, 2):
            wet = self.water.is_point_in_water((start[0]+dx*d, start[1]+dy*d))
            if not entered and wet:
                entered = True; entry = d
            elif entered and not wet:
                return d - entry
        return None

    def landing_point(self, start, angle, width):
        dx, dy = math.cos(angle), math.sin(angle)
        d = width + 5
        while d <= width + 30:
            p = (start[0]+dx*d, start[1]+dy*d)
            if not self.water.is_point_in_water(p) and 0 <= p[0] <= self.MAP_WIDTH and 0 <= p[1] <= self.HEIGHT:
                return p
            d += 2
        return None

    def bridge_probability(self, pt):
        if not self.bridge_positions: return BASE_BRIDGE_PROB
        md = min(math.hypot(pt[0]-b[0], pt[1]-b[1]) for b in self.bridge_positions)
        half = MIN_BRIDGE_SPACING*0.5
        if md < half: return 0.05
        if md < MIN_BRIDGE_SPACING:
            return 0.05 + (md-half)/half*(BASE_BRIDGE_PROB-0.05)
        return BASE_BRIDGE_PROB

    def _try_bridge(self, agent, heading):
        g = self.graph
        angle = self.shore_normal(agent.pos, heading)
        width = self.crossing_width(agent.pos, angle)
        if width is None or width > MAX_BRIDGE_WIDTH: return False
        if self.rng.random() >= self.bridge_probability(agent.pos): return False
        landing = self.landing_point(agent.pos, angle, width)
        if landing is None: return False
        start = g.nodes[agent.node_id]
        if g.crosses_existing(start.pos, landing, (start.id,)): return False
        end = g.add_node(landing)
        if self._add_edge(start.id, end.id, bridge=True) is None:
            g.remove_node(end.id); return False
        self.bridge_positions.append(((start.x+end.x)/2, (start.y+end.y)/2))
        agent.pos = end.pos; agent.node_id = end.id; agent.heading = angle
        if self._p("VERBOSE"): print("[Roads] bridge", start.id, "->", end.id, f"width={width}")
        return True

    # ---------------- gap filling ----------------

    def surrounded_directions(self, pt, directions=8):
        far = max(self.MAP_WIDTH, self.HEIGHT)/2
        hit = self._p("SEGMENT_LENGTH", 10)*2
        count = 0
        for i in range(directions):
            a = math.pi*2/directions*i; dx, dy = math.cos(a), math.sin(a)
            for n in self.graph.nodes.values():
                vx = n.x-pt[0]; vy = n.y-pt[1]
                along = vx*dx + vy*dy
                if along < 0 or along > far: continue
                if abs(vx*dy - vy*dx) < hit:
                    count += 1; break
        return count

    def fill_empty_areas(self):
        """Reseed interior holes the frontier has grown around. Returns the new node or None."""
        seg = self._p("SEGMENT_LENGTH", 10); rng = self.rng
        margin = seg*2
        cx, cy = self.boundary.center
        for _ in range(10):
            p = (margin + rng.random()*(self.MAP_WIDTH - margin*2), margin + rng.random()*(self.HEIGHT - margin*2))
            if self.water.is_point_in_water(p): continue
            if math.hypot(p[0]-cx, p[1]-cy) > self.boundary.radius: continue
            near, d = self.graph.nearest_node_any(p)
            if near is None or d < seg*4: continue
            if self.surrounded_directions(p) >= 5:
                return self._spawn_fill(p, near)
        return None

    def _spawn_fill(self, p, near):
        g = self.graph
        if g.crosses_existing(p, near.pos, (near.id,)): return None
        if self.water.segment_in_water(p, near.pos): return None
        node = g.add_node(p)
        self._add_edge(node.id, near.id)
        radial = self._p("STRATEGY") == "RADIAL"
        k = 4 if radial else 3
        for i in range(k):
            self.agents.append(Agent(node.pos, math.pi*2/k*i + self.rng.random()*0.3, node.id, "RING" if radial else None))
        if self._p("VERBOSE"): print("[Roads] fill seed at", (round(p[0]), round(p[1])))
        return node

    # ---------------- cleanup helpers ----------------

    def prune_spurs(self):
        """Remove dead-end edges hanging off an intersection. Returns the number removed."""
        g = self.graph; removed = 0
        for eid in reversed(list(g.edges)):
            e = g.edges.get(eid)
            if e is None or e.bridge: continue
            a = g.nodes.get(e.u); b = g.nodes.get(e.v)
            if a is None or b is None: continue
            if (a.degree == 1 and b.degree >= 3) or (b.degree == 1 and a.degree >= 3):
                g.remove_edge(eid); removed += 1
        return removed

    def draw(self, screen, world_to_screen, cam_zoom, show_agents=True):
        import pygame
        g = self.graph
        width_px = max(1, int(2*cam_zoom))
        for e in g.edges.values():
            a = world_to_screen(g.nodes[e.u].pos); b = world_to_screen(g.nodes[e.v].pos)
            if e.bridge:
                pygame.draw.line(screen, BRIDGE_COLOR, a, b, width_px+2)
            elif e.id in self.last_step_edge_ids:
                pygame.draw.line(screen, NEW_COLOR, a, b, width_px)
            else:
                pygame.draw.line(screen, ROAD_COLOR, a, b, width_px)
        if show_agents:
            for ag in self.agents:
                pygame.draw.circle(screen, AGENT_COLOR, world_to_screen(ag.pos), max(2, int(3*cam_zoom)))
