import random
import pytest
from params import make_params
from buildings import BuildingSystem, LOT_AREA_FACTOR
from plots import Plot
from geometry import polygon_area, min_interior_angle
from conftest import MAP, build_graph, overlapping_pairs

def system(graph=None, **overrides):
    params = make_params(seed=1, **overrides)
    graph = graph or build_graph([(0, 0), (100, 0)], [(0, 1)])
    return BuildingSystem(MAP, params, graph, random.Random(1))

def roadside_plot(pid="strip_0"):
    return Plot(pid, [(0, 2), (100, 2), (100, 32), (0, 32)], "strip", [0], [])

def test_small_polygon_is_one_lot():
    bs = system()
    poly = [(0, 0), (20, 0), (20, 20), (0, 20)]
    assert bs.smart_subdivide(poly, [], random.Random(0)) == [poly]

def test_subdivision_covers_the_polygon():
    bs = system()
    poly = [(0, 0), (120, 0), (120, 70), (0, 70)]
    lots = bs.smart_subdivide(poly, [], random.Random(4))
    assert len(lots) > 1
    assert sum(polygon_area(l) for l in lots) == pytest.approx(120*70, rel=1e-6)
    limit = bs.params["MAX_BUILDING_AREA"]*LOT_AREA_FACTOR
    assert all(polygon_area(l) < limit for l in lots)

def test_cuts_run_across_the_road():
    bs = system()
    roads = bs.frontage_segments(roadside_plot())
    lots = bs.smart_subdivide(roadside_plot().points, roads, random.Random(0))
    assert len(lots) >= 2
    for lot in lots:
        ys = [p[1] for p in lot]
        assert min(ys) == pytest.approx(2) and max(ys) == pytest.approx(32)

def test_roadside_plot_gets_trimmed_buildings():
    bs = system()
    solid, open_ = bs.plan_plot(roadside_plot(), random.Random(0))
    assert solid
    for poly in solid:
        assert polygon_area(poly) > bs.params["MIN_BUILDING_AREA"]
        assert max(p[1] for p in poly) <= 15 + 1e-6
    assert open_

def test_no_trim_when_depth_is_zero():
    bs = system(fixed_building_depth=0)
    solid, open_ = bs.plan_plot(roadside_plot(), random.Random(0))
    assert solid and not open_
    assert any(max(p[1] for p in poly) == pytest.approx(32) for poly in solid)

def test_lot_away_from_road_is_courtyard_in_enclosed_plot():
    bs = system()
    far = Plot("core_0", [(0, 200), (20, 200), (20, 220), (0, 220)], "enclosed", [0], [])
    solid, open_ = bs.plan_plot(far, random.Random(0))
    assert not solid and len(open_) == 1
    strip = Plot("strip_9", far.points, "strip", [0], [])
    assert bs.plan_plot(strip, random.Random(0)) == ([], [])

def test_overlapping_building_rejected():
    bs = system()
    a = bs.add_building([(0, 0), (10, 0), (10, 10), (0, 10)])
    assert a is not None and a.id == "b_0"
    assert bs.add_building([(5, 5), (15, 5), (15, 15), (5, 15)]) is None
    assert bs.add_building([(11, 0), (20, 0), (20, 10), (11, 10)]) is not None
    c = bs.add_building([(5, 5), (15, 5), (15, 15), (5, 15)], solid=False)
    assert c.id.startswith("c_") and c in bs.courtyards
    assert len(bs.buildings) == 2

def test_min_angle_drops_sharp_footprints():
    wedge = Plot("strip_3", [(0, 2), (100, 2), (100, 32), (60, 32)], "strip", [0], [])
    loose, _ = system(min_angle=0).plan_plot(wedge, random.Random(0))
    strict, _ = system(min_angle=30).plan_plot(wedge, random.Random(0))
    assert min(min_interior_angle(p) for p in loose) < 30
    assert strict and all(min_interior_angle(p) >= 30 for p in strict)
    assert len(strict) == len(loose) - 1

def test_can_fit_is_a_dry_run():
    bs = system()
    assert bs.can_fit_building(roadside_plot())
    assert not bs.buildings and not bs.courtyards
    tiny = Plot("strip_1", [(0, 2), (5, 2), (5, 7), (0, 7)], "strip", [0], [])
    assert not bs.can_fit_building(tiny)

def test_chunked_generation():
    g = build_graph([(0, 0), (700, 0)], [(0, 1)])
    bs = system(g, building_batch=3)
    plots = [Plot(f"strip_{i}", [(i*100, 2), (i*100+90, 2), (i*100+90, 32), (i*100, 32)], "strip", [0], [])
             for i in range(7)]
    bs.start_generation(plots)
    assert bs.is_generation_active()
    results = []
    while bs.is_generation_active():
        results.append(bs.step_generation())
    assert results == [True, True, False]
    assert bs.buildings
    assert not overlapping_pairs([b.test_points for b in bs.buildings])
    assert bs.step_generation() is False

def test_start_with_no_plots_is_inactive():
    bs = system()
    bs.start_generation([])
    assert not bs.is_generation_active()
