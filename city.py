import random
from params import make_params
from water import WaterSystem
from boundary import CityBoundary
from roads import RoadSystem, RoadGraph
from plots import PlotSystem, CLEANUP_ITERATIONS
from buildings import BuildingSystem

class CityGenerator:
    """Wires water, boundary, roads, plots and buildings behind one tick-driven surface.

    Read properties return copies; the viewer never touches live state.
    """
    def __init__(self, params=None, **overrides):
        self.params = make_params(params, **overrides)
        W, H = self.params["WIDTH"], self.params["HEIGHT"]
        self.map_size = (W, H)
        self.rng = random.Random(self.params["SEED"])
        self.water = WaterSystem(self.map_size, self.params, self.rng)
        self.boundary = CityBoundary(self.map_size, self.params, self.water, self.rng)
        self.graph = RoadGraph(max(1.0, self.params["SEGMENT_LENGTH"]*2))
        self.roads = RoadSystem(self.map_size, self.params, self.water, self.boundary, self.rng, self.graph)
        self.plot_system = PlotSystem(self.map_size, self.params, self.graph, self.water)
        self.building_system = BuildingSystem(self.map_size, self.params, self.graph, self.rng)
        self.reset()

    def _log(self, *msg):
        if self.params["VERBOSE"]: print("[City]", *msg)

    # ---------------- lifecycle ----------------

    def reset(self):
        """Regenerate water and the city limit, then restart roads from the centre."""
        self.water.generate()
        self.boundary.initialize()
        self.reset_roads()
        self._log("reset, centre", tuple(round(c) for c in self.boundary.center))

    def reset_roads(self):
        self.plot_system.clear()
        self.building_system.reset()
        self.roads.reset(self.boundary.center)
        self.plot_system.center = self.boundary.center

    def set_city_center(self, point):
        self.boundary.initialize(point)
        self.reset_roads()

    def step(self):
        return self.roads.step()

    def grow(self, max_ticks=1000):
        """Step until no agents remain or max_ticks have run. Returns ticks run."""
        ticks = 0
        while self.roads.agents and ticks < max_ticks:
            self.roads.step(); ticks += 1
        return ticks

    # ---------------- plots & buildings ----------------

    def generate_blocks(self):
        self.building_system.reset()
        return self.plot_system.generate(self.boundary.center)

    def clear_blocks(self):
        self.plot_system.clear()
        self.building_system.reset()

    def start_building_generation(self):
        self.building_system.start_generation(self.plot_system.plots)

    def step_building_generation(self):
        return self.building_system.step_generation()

    def is_building_generation_active(self):
        return self.building_system.is_generation_active()

    def clear_buildings(self):
        self.building_system.reset()

    def cleanup(self):
        """Prune spurs, drop unbuildable plots and merge empty loops until stable. Returns edges removed."""
        removed = 0
        can_fit = self.building_system.can_fit_building
        for _ in range(CLEANUP_ITERATIONS):
            n = self.roads.prune_spurs()
            self.plot_system.cleanup_plots(can_fit)
            loops = self.plot_system.find_empty_road_loops()
            for eid in loops:
                if self.graph.remove_edge(eid): n += 1
            removed += n
            if n == 0: break
            self.generate_blocks()
        else:
            self.plot_system.cleanup_plots(can_fit)
        self.building_system.reset()
        self._log("cleanup removed", removed, "edges;", len(self.plot_system.plots), "plots left")
        return removed

    # ---------------- read surfaces ----------------

    @property
    def nodes(self): return dict(self.graph.nodes)
    @property
    def edges(self): return list(self.graph.edges.values())
    @property
    def bridge_edge_ids(self): return set(self.graph.bridge_edge_ids)
    @property
    def active_agents(self): return list(self.roads.agents)
    @property
    def plots(self): return list(self.plot_system.plots)
    @property
    def buildings(self): return list(self.building_system.buildings)
    @property
    def courtyards(self): return list(self.building_system.courtyards)
    @property
    def last_step_edge_ids(self): return set(self.roads.last_step_edge_ids)
    @property
    def last_step_building_ids(self): return set(self.building_system.last_step_ids)
    @property
    def water_bodies(self): return [list(b["poly"]) for b in self.water.bodies]
    @property
    def city_center(self): return self.boundary.center
    @property
    def city_boundary(self): return list(self.boundary.poly)

    def draw(self, screen, world_to_screen, cam_zoom, show_plots=True, show_agents=True):
        self.water.draw(screen, world_to_screen, cam_zoom)
        self.boundary.draw(screen, world_to_screen, cam_zoom)
        if show_plots: self.plot_system.draw(screen, world_to_screen, cam_zoom)
        self.building_system.draw(screen, world_to_screen, cam_zoom)
        self.roads.draw(screen, world_to_screen, cam_zoom, show_agents)
