import pytest
from params import make_params, DEFAULT_PARAMS
from city import CityGenerator
from geometry import obb
from conftest import grid_graph, overlapping_pairs, no_proper_crossings

def test_make_params_defaults_and_case():
    p = make_params(seed=4, strategy="grid")
    assert p["SEED"] == 4 and p["STRATEGY"] == "GRID"
    assert p["MIN_BUILDING_AREA"] == DEFAULT_PARAMS["MIN_BUILDING_AREA"]

def test_make_params_clamps():
    p = make_params(branching_factor=3, city_size=0, max_building_area=10, min_building_area=50)
    assert p["BRANCHING_FACTOR"] == 1.0
    assert p["CITY_SIZE"] == 0.05
    assert p["MAX_BUILDING_AREA"] == 50

@pytest.mark.parametrize("bad", [{"strategy": "SPIRAL"}, {"water_feature": "OCEAN"}, {"no_such_key": 1}])
def test_make_params_rejects(bad):
    with pytest.raises(ValueError):
        make_params(**bad)

def grid_city(**overrides):
    gen = CityGenerator(seed=1, **overrides)
    gen.roads.agents = []
    g = grid_graph()
    gen.graph.clear()
    for n in g.nodes.values(): gen.graph.add_node(n.pos)
    for e in g.edges.values(): gen.graph.add_edge(e.u, e.v)
    return gen

def test_read_surfaces_are_copies():
    gen = grid_city()
    gen.generate_blocks()
    gen.plots.clear(); gen.nodes.clear(); gen.edges.clear()
    assert gen.plots and gen.nodes and gen.edges
    assert gen.city_center == gen.boundary.center
    assert gen.city_boundary == gen.boundary.poly

def test_blocks_then_clear():
    gen = grid_city()
    assert len(gen.generate_blocks()) == 21
    gen.clear_blocks()
    assert gen.plots == []

def test_cleanup_on_stable_grid_is_idempotent():
    gen = grid_city()
    gen.generate_blocks()
    first = gen.cleanup()
    edges = len(gen.edges)
    assert first == 0 and edges == 24
    assert gen.cleanup() == 0
    assert len(gen.edges) == edges

def test_cleanup_merges_block_without_plots():
    gen = grid_city(min_building_area=64)
    gen.generate_blocks()
    gen.plot_system.plots = []
    removed = gen.cleanup()
    assert removed > 0
    assert len(gen.edges) < 24
    assert gen.cleanup() == 0

def test_chunked_building_generation():
    gen = grid_city(building_batch=4)
    gen.generate_blocks()
    gen.start_building_generation()
    steps = 0
    while gen.is_building_generation_active():
        gen.step_building_generation(); steps += 1
    assert steps == 6
    assert gen.buildings
    assert not overlapping_pairs([b.test_points for b in gen.buildings])
    gen.clear_buildings()
    assert gen.buildings == [] and gen.courtyards == []

def test_set_city_center_restarts_roads():
    gen = CityGenerator(seed=2)
    gen.grow(20)
    gen.set_city_center((100, 150))
    assert gen.city_center == (100, 150)
    assert len(gen.nodes) == 1 and not gen.edges
    assert gen.active_agents
    assert gen.plots == [] and gen.buildings == []

def test_step_reports_last_edges():
    gen = CityGenerator(seed=6)
    gen.step()
    assert gen.last_step_edge_ids <= {e.id for e in gen.edges}

def test_end_to_end_organic():
    gen = CityGenerator(seed=7, width=500, height=500, strategy="ORGANIC")
    ticks = gen.grow(1000)
    assert 0 < ticks <= 1000
    assert len(gen.edges) > 50
    assert no_proper_crossings(gen.graph)
    plots = gen.generate_blocks()
    assert plots
    assert not overlapping_pairs([p.test_points for p in plots])
    min_area = gen.params["MIN_BUILDING_AREA"]
    for p in plots:
        assert len(p.points) >= 3 and p.frontage
        if p.is_enclosed: assert p.area >= min_area
    gen.cleanup()
    for p in gen.plots:
        assert p.area >= min_area
        assert obb(p.points).width >= gen.params["MIN_EDGE_LENGTH"]
    gen.start_building_generation()
    while gen.is_building_generation_active():
        gen.step_building_generation()
    assert gen.buildings
    assert not overlapping_pairs([b.test_points for b in gen.buildings])
    assert all(b.area > gen.params["MIN_BUILDING_AREA"] for b in gen.buildings)

@pytest.mark.parametrize("feature", ["RIVER", "COAST", "LAKE"])
def test_growth_with_water_stays_dry(feature):
    gen = CityGenerator(seed=12, water_feature=feature)
    gen.grow(300)
    assert gen.water_bodies
    for n in gen.nodes.values():
        assert not gen.water.is_point_in_water(n.pos)
    for eid in gen.bridge_edge_ids:
        e = gen.graph.edges[eid]
        assert gen.graph.edge_length(e) <= 60 + 30 + 10

def test_same_seed_same_city():
    a = CityGenerator(seed=21); a.grow(200)
    b = CityGenerator(seed=21); b.grow(200)
    assert [n.pos for n in a.nodes.values()] == [n.pos for n in b.nodes.values()]
    assert [p.points for p in a.generate_blocks()] == [p.points for p in b.generate_blocks()]

def test_draw_smoke():
    pygame = pytest.importorskip("pygame")
    gen = CityGenerator(seed=3, water_feature="RIVER")
    gen.grow(50)
    gen.generate_blocks()
    gen.start_building_generation(); gen.step_building_generation()
    surface = pygame.Surface((500, 500))
    gen.draw(surface, lambda p: (int(p[0]), int(p[1])), 1.0)
