import math, random
import pytest
from params import make_params
from roads import RoadGraph, RoadSystem, Agent, BASE_BRIDGE_PROB, MIN_BRIDGE_SPACING
from water import WaterSystem
from conftest import MAP, OpenBoundary, build_graph, water_band, no_proper_crossings

class AlwaysLow(random.Random):
    def random(self): return 0.0

class Fixed(random.Random):
    """Seeded generator whose random() always returns one value."""
    def __init__(self, value):
        super().__init__(0); self.value = value
    def random(self): return self.value

class DiscBoundary(OpenBoundary):
    def is_point_inside_city(self, pt):
        return math.hypot(pt[0]-self.center[0], pt[1]-self.center[1]) <= self.radius

def grown(seed=3, strategy="ORGANIC", ticks=150, water=None):
    params = make_params(seed=seed, strategy=strategy)
    water = water or water_band(-100, -50)
    roads = RoadSystem(MAP, params, water, OpenBoundary(), random.Random(seed))
    roads.reset((250.0, 250.0))
    for _ in range(ticks):
        if not roads.agents: break
        roads.step()
    return roads

# ---------------- graph ----------------

def test_add_edge_rejects_loops_duplicates_and_missing():
    g = RoadGraph()
    a = g.add_node((0, 0)); b = g.add_node((10, 0))
    assert g.add_edge(a.id, a.id) is None
    e = g.add_edge(a.id, b.id)
    assert e is not None
    assert g.add_edge(b.id, a.id) is None
    assert g.add_edge(a.id, 99) is None
    assert a.neighbors == [b.id] and b.neighbors == [a.id]
    assert g.edge_between(b.id, a.id) is e

def test_remove_edge_drops_isolated_nodes():
    g = build_graph([(0, 0), (10, 0), (20, 0)], [(0, 1), (1, 2)])
    e = g.edge_between(0, 1)
    assert g.remove_edge(e.id)
    assert 0 not in g.nodes and 1 in g.nodes
    assert g.nodes[1].neighbors == [2]
    assert not g.remove_edge(e.id)
    assert g.nearest_node((0, 0), 5) is None

def test_remove_node_clears_adjacency():
    g = build_graph([(0, 0), (10, 0), (20, 0)], [(0, 1), (1, 2)])
    g.remove_node(1)
    assert not g.edges
    assert g.nodes[0].neighbors == [] and g.nodes[2].neighbors == []

def test_nearest_node_prefers_older_on_tie():
    g = build_graph([(0, 0), (10, 0)], [])
    assert g.nearest_node((5, 0), 6).id == 0
    assert g.nearest_node((5, 0), 5) is None
    assert g.nearest_node((1, 0), 10, exclude=0).id == 1

def test_crosses_existing():
    g = build_graph([(0, 0), (10, 10)], [(0, 1)])
    assert g.crosses_existing((0, 10), (10, 0))
    assert not g.crosses_existing((0, 0), (0, 10), (0,))
    assert not g.crosses_existing((20, 0), (30, 0))

# ---------------- growth ----------------

@pytest.mark.parametrize("strategy,count,role", [("ORGANIC", 3, None), ("GRID", 4, None), ("RADIAL", 8, "SPOKE")])
def test_initial_agents(strategy, count, role):
    params = make_params(strategy=strategy)
    roads = RoadSystem(MAP, params, water_band(-100, -50), OpenBoundary(), random.Random(0))
    start = roads.reset((250, 250))
    assert len(roads.agents) == count
    assert all(a.node_id == start.id and a.role == role for a in roads.agents)
    assert len(roads.graph.nodes) == 1 and not roads.graph.edges

@pytest.mark.parametrize("strategy", ["ORGANIC", "GRID", "RADIAL"])
def test_growth_keeps_graph_consistent(strategy):
    roads = grown(strategy=strategy)
    g = roads.graph
    assert len(g.edges) > 10
    pairs = set()
    for e in g.edges.values():
        assert e.u != e.v and e.u in g.nodes and e.v in g.nodes
        assert e.pair not in pairs
        pairs.add(e.pair)
        assert e.v in g.nodes[e.u].neighbors and e.u in g.nodes[e.v].neighbors
    for n in g.nodes.values():
        assert 0 <= n.x <= MAP[0] and 0 <= n.y <= MAP[1]
        assert len(set(n.neighbors)) == len(n.neighbors)
    assert no_proper_crossings(g)

def test_growth_is_deterministic():
    a = grown(seed=11); b = grown(seed=11)
    assert [n.pos for n in a.graph.nodes.values()] == [n.pos for n in b.graph.nodes.values()]
    assert [e.pair for e in a.graph.edges.values()] == [e.pair for e in b.graph.edges.values()]

def test_step_reports_new_edges():
    params = make_params(seed=2)
    roads = RoadSystem(MAP, params, water_band(-100, -50), OpenBoundary(), random.Random(2))
    roads.reset((250, 250))
    laid = roads.step()
    assert laid == len(roads.last_step_edge_ids) > 0
    assert roads.last_step_edge_ids <= set(roads.graph.edges)

def test_no_nodes_in_wide_river():
    roads = grown(seed=5, ticks=200, water=water_band(300, 420))
    assert roads.graph.nodes
    for n in roads.graph.nodes.values():
        assert not roads.water.is_point_in_water(n.pos)
    for e in roads.graph.edges.values():
        assert not roads.water.segment_in_water(roads.graph.nodes[e.u].pos, roads.graph.nodes[e.v].pos)
    assert not roads.graph.bridge_edge_ids

def test_empty_agents_step_is_noop():
    roads = grown(ticks=0)
    roads.agents = []
    assert roads.step() == 0

def test_hard_limit_exit_chance_decays():
    params = make_params(strategy="GRID", hard_city_limit=True)
    roads = RoadSystem(MAP, params, water_band(-100, -50), DiscBoundary((250.0, 250.0), 50.0), Fixed(0.3))
    g = roads.graph
    agents = []
    for pos, heading in [((295, 250), 0.0), ((250, 295), math.pi/2), ((205, 250), math.pi)]:
        n = g.add_node(pos)
        agents.append(Agent(n.pos, heading, n.id))
    # 0.3 < 0.8, 0.3 < 0.4, then 0.3 >= 0.2
    assert [roads._advance(a, []) for a in agents] == [True, True, False]
    assert roads.exit_count == 2 and len(g.edges) == 2
    assert agents[0].steps_since_branch < 0
    assert roads._advance(agents[0], [])
    assert roads.exit_count == 2

def test_ring_agents_steer_tangentially():
    roads = RoadSystem(MAP, make_params(strategy="RADIAL"), water_band(-100, -50), OpenBoundary(), Fixed(0.5))
    ring = Agent((300.0, 250.0), 1.4, 0, "RING")
    assert roads._steer(ring) == pytest.approx(math.pi/2)
    ring.heading = -1.2
    assert roads._steer(ring) == pytest.approx(-math.pi/2)
    spoke = Agent((300.0, 250.0), 1.4, 0, "SPOKE")
    assert roads._steer(spoke) == 1.4

@pytest.mark.parametrize("roll,survives", [(0.01, False), (0.5, True)])
def test_ring_agent_death_roll(roll, survives):
    roads = RoadSystem(MAP, make_params(strategy="RADIAL"), water_band(-100, -50), OpenBoundary(), Fixed(roll))
    node = roads.graph.add_node((300.0, 250.0))
    ring = Agent(node.pos, math.pi/2, node.id, "RING")
    spawned = []
    assert roads._advance(ring, spawned) is survives
    assert len(roads.graph.edges) == 1 and not spawned

# ---------------- river following ----------------

def follower_roads(band, roll=0.5):
    w = WaterSystem(MAP, make_params(), random.Random(0))
    if band: w.add_body("RIVER", band)
    return RoadSystem(MAP, make_params(), w, OpenBoundary(), Fixed(roll))

def follower():
    agent = Agent((250.0, 250.0), 0.0, 0)
    agent.following_river = True
    return agent

@pytest.mark.parametrize("band,expected,following", [
    (None, 0.0, False),
    ([(0, 255), (500, 255), (500, 300), (0, 300)], 0.1, True),
    ([(0, 200), (500, 200), (500, 245), (0, 245)], -0.1, True),
])
def test_river_follow_nudges_away_from_water(band, expected, following):
    agent = follower()
    assert follower_roads(band)._steer(agent) == pytest.approx(expected)
    assert agent.following_river is following

def test_river_follow_turns_when_both_sides_wet():
    agent = follower()
    heading = follower_roads([(0, 235), (500, 235), (500, 265), (0, 265)])._steer(agent)
    assert abs(heading) == pytest.approx(math.pi/2)
    assert not agent.following_river

def test_river_follow_release():
    agent = follower()
    assert follower_roads(None, roll=0.05)._steer(agent) == pytest.approx(-0.45*math.pi)
    assert not agent.following_river

# ---------------- water crossing ----------------

def river_roads(rng=None):
    params = make_params(seed=0)
    roads = RoadSystem(MAP, params, water_band(100, 120), OpenBoundary(), rng or random.Random(0))
    roads.reset((90.0, 50.0))
    return roads

def test_crossing_width_and_landing():
    roads = river_roads()
    assert roads.crossing_width((90, 50), 0.0) == 20
    land = roads.landing_point((90, 50), 0.0, 20)
    assert land[0] > 120 and not roads.water.is_point_in_water(land)
    assert roads.crossing_width((90, 50), math.pi) is None

def test_shore_normal_points_across():
    roads = river_roads()
    assert roads.shore_normal((90, 50), 0.1) == pytest.approx(0.0, abs=1e-6)

def test_bridge_probability_falls_near_existing_bridge():
    roads = river_roads()
    assert roads.bridge_probability((0, 0)) == BASE_BRIDGE_PROB
    roads.bridge_positions.append((0, 0))
    assert roads.bridge_probability((50, 0)) == pytest.approx(0.05)
    assert 0.05 < roads.bridge_probability((MIN_BRIDGE_SPACING*0.75, 0)) < BASE_BRIDGE_PROB
    assert roads.bridge_probability((MIN_BRIDGE_SPACING*2, 0)) == BASE_BRIDGE_PROB

def test_bridge_spans_narrow_river():
    roads = river_roads(AlwaysLow(0))
    start = roads.graph.nodes[0]
    agent = Agent(start.pos, 0.0, start.id)
    assert roads._try_bridge(agent, 0.0)
    bridges = roads.graph.bridge_edge_ids
    assert len(bridges) == 1
    e = roads.graph.edges[bridges.pop()]
    end = roads.graph.nodes[e.other(start.id)]
    assert end.x > 120 and agent.node_id == end.id
    assert len(roads.bridge_positions) == 1

# ---------------- gap filling & cleanup ----------------

def test_surrounded_directions():
    pts = [(250+50*math.cos(i*math.pi/8), 250+50*math.sin(i*math.pi/8)) for i in range(16)]
    roads = river_roads()
    roads.graph.clear()
    for p in pts: roads.graph.add_node(p)
    assert roads.surrounded_directions((250, 250)) == 8
    roads.graph.clear()
    assert roads.surrounded_directions((250, 250)) == 0

@pytest.mark.parametrize("strategy,count,role", [("ORGANIC", 3, None), ("RADIAL", 4, "RING")])
def test_fill_reseeds_surrounded_hole(strategy, count, role):
    ring = [(250+50*math.cos(i*math.pi/8), 250+50*math.sin(i*math.pi/8)) for i in range(16)]
    roads = RoadSystem(MAP, make_params(strategy=strategy), water_band(-100, -50), OpenBoundary(), Fixed(0.5),
                       build_graph(ring, []))
    node = roads.fill_empty_areas()
    assert node is not None and node.pos == (250.0, 250.0)
    assert node.degree == 1
    assert len(roads.agents) == count
    assert all(a.node_id == node.id and a.role == role for a in roads.agents)

def test_fill_connector_may_not_cross_water():
    roads = river_roads()
    roads.agents = []
    near = roads.graph.add_node((130.0, 50.0))
    assert roads._spawn_fill((90.0, 60.0), near) is None
    assert not roads.agents and len(roads.graph.nodes) == 2

def test_prune_spurs_removes_dead_end_off_junction():
    g = build_graph([(0, 0), (10, 0), (10, 10), (0, 10), (-10, 0)], [(0, 1), (1, 2), (2, 3), (3, 0), (0, 4)])
    roads = RoadSystem(MAP, make_params(), water_band(-100, -50), OpenBoundary(), random.Random(0), g)
    assert roads.prune_spurs() == 1
    assert 4 not in g.nodes and len(g.edges) == 4
    assert roads.prune_spurs() == 0

def test_prune_spurs_keeps_plain_dead_ends():
    g = build_graph([(0, 0), (10, 0), (20, 0)], [(0, 1), (1, 2)])
    roads = RoadSystem(MAP, make_params(), water_band(-100, -50), OpenBoundary(), random.Random(0), g)
    assert roads.prune_spurs() == 0

def test_segment_in_water():
    w = river_roads().water
    assert not w.segment_in_water((10, 10), (90, 10))
    assert w.segment_in_water((90, 10), (130, 10))
    assert w.segment_in_water((105, 10), (110, 20))
