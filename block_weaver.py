import argparse
import pygame
from params import DEFAULT_PARAMS, STRATEGIES, WATER_FEATURES, make_params
from city import CityGenerator
from ui import ParamPanel, Slider, Choice

PANEL_WIDTH = 300
BG_COLOR    = (247, 246, 242)

HELP = [
    "[Space] grow / pause",
    "[B] blocks  [H] buildings",
    "[C] cleanup  [X] clear blocks",
    "[V] clear buildings",
    "[N] new roads  [R] full reset",
    "[P] plots  [A] agents",
    "click map: move centre",
    "right-drag pan, wheel zoom",
]

class Viewer:
    """Drives a CityGenerator once per frame and renders it."""

    def __init__(self, params):
        self.params = dict(params)
        self.city = CityGenerator(self.params)
        self.cam_zoom = 1.0
        self.cam_offset = [0.0, 0.0]
        self.growing = True
        self.show_plots = True
        self.show_agents = True
        self.panel = None

    def world_to_screen(self, pt):
        return ((pt[0]-self.cam_offset[0])*self.cam_zoom, (pt[1]-self.cam_offset[1])*self.cam_zoom)

    def screen_to_world(self, pt):
        return (pt[0]/self.cam_zoom + self.cam_offset[0], pt[1]/self.cam_zoom + self.cam_offset[1])

    def rebuild(self):
        """Apply pending panel edits and regenerate everything."""
        edits = self.panel.take_pending() if self.panel is not None else {}
        self.params = make_params(self.params, **edits)
        self.city = CityGenerator(self.params)
        self.growing = True
        print("[App] rebuilt with", {k: self.params[k] for k in ("STRATEGY", "WATER_FEATURE", "SEED")})

    def handle_key(self, key):
        city = self.city
        if key == pygame.K_SPACE:
            self.growing = not self.growing
        elif key == pygame.K_b:
            self.growing = False
            print("[App] blocks:", len(city.generate_blocks()))
        elif key == pygame.K_h:
            if not city.plots: city.generate_blocks()
            city.start_building_generation()
            print("[App] building generation started")
        elif key == pygame.K_c:
            if not city.plots: city.generate_blocks()
            n = city.cleanup()
            print(f"[App] cleanup removed {n} edges, {len(city.plots)} plots left")
        elif key == pygame.K_x:
            city.clear_blocks()
        elif key == pygame.K_v:
            city.clear_buildings()
        elif key == pygame.K_n:
            city.reset_roads(); self.growing = True
        elif key == pygame.K_r:
            self.rebuild()
        elif key == pygame.K_p:
            self.show_plots = not self.show_plots
        elif key == pygame.K_a:
            self.show_agents = not self.show_agents

    def update(self):
        if self.growing:
            for _ in range(int(self.params["GROWTH_SPEED"])):
                self.city.step()
            if not self.city.active_agents:
                self.growing = False
                print(f"[App] growth finished: {len(self.city.nodes)} nodes, {len(self.city.edges)} edges")
        if self.city.is_building_generation_active():
            if not self.city.step_building_generation():
                print("[App] buildings:", len(self.city.buildings), "courtyards:", len(self.city.courtyards))

    def draw(self, screen):
        screen.fill(BG_COLOR)
        self.city.draw(screen, self.world_to_screen, self.cam_zoom, self.show_plots, self.show_agents)

def build_panel(viewer, rect, font):
    p = viewer.params
    panel = ParamPanel(rect, font)
    panel.add(Choice("Strategy", "STRATEGY", STRATEGIES, p["STRATEGY"]))
    panel.add(Choice("Water", "WATER_FEATURE", WATER_FEATURES, p["WATER_FEATURE"]))
    panel.add(Choice("Hard limit", "HARD_CITY_LIMIT", (False, True), p["HARD_CITY_LIMIT"]))
    panel.add(Slider("Branching", "BRANCHING_FACTOR", 0.0, 1.0, p["BRANCHING_FACTOR"], 0.01))
    panel.add(Slider("Segment", "SEGMENT_LENGTH", 4, 30, p["SEGMENT_LENGTH"], 1, integer=True))
    panel.add(Slider("City size", "CITY_SIZE", 0.1, 1.0, p["CITY_SIZE"], 0.05))
    panel.add(Slider("Min area", "MIN_BUILDING_AREA", 16, 400, p["MIN_BUILDING_AREA"], 4, integer=True))
    panel.add(Slider("Max area", "MAX_BUILDING_AREA", 100, 2000, p["MAX_BUILDING_AREA"], 25, integer=True))
    panel.add(Slider("Irregularity", "BUILDING_IRREGULARITY", 0.0, 0.5, p["BUILDING_IRREGULARITY"], 0.01))
    panel.add(Slider("Depth", "FIXED_BUILDING_DEPTH", 0, 40, p["FIXED_BUILDING_DEPTH"], 1, integer=True))
    panel.add(Slider("Speed", "GROWTH_SPEED", 1, 20, p["GROWTH_SPEED"], 1, integer=True))
    viewer.panel = panel
    return panel

def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Grow a city road network, carve it into plots and fill them with buildings.")
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--strategy", choices=STRATEGIES, default=DEFAULT_PARAMS["STRATEGY"])
    ap.add_argument("--water", choices=WATER_FEATURES, default=DEFAULT_PARAMS["WATER_FEATURE"])
    ap.add_argument("--size", type=int, nargs=2, metavar=("W", "H"), default=(800, 600))
    ap.add_argument("--hard-limit", action="store_true")
    ap.add_argument("--verbose", action="store_true")
    return ap.parse_args(argv)

def main(argv=None):
    args = parse_args(argv)
    params = make_params(seed=args.seed, strategy=args.strategy, water_feature=args.water,
                         width=args.size[0], height=args.size[1], hard_city_limit=args.hard_limit,
                         verbose=args.verbose)
    pygame.init(); pygame.font.init()
    W, H = params["WIDTH"], params["HEIGHT"]
    screen = pygame.display.set_mode((W + PANEL_WIDTH, H))
    pygame.display.set_caption("BlockWeaver")
    font = pygame.font.SysFont(None, 20)
    viewer = Viewer(params)
    panel = build_panel(viewer, (W, 0, PANEL_WIDTH, H), font)
    clock = pygame.time.Clock()
    panning = False; pan_from = None
    running = True
    while running:
        clock.tick(60)
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False; continue
            if panel.handle_event(event): continue
            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE: running = False
                else: viewer.handle_key(event.key)
            elif event.type == pygame.MOUSEBUTTONDOWN:
                if event.button == 1 and event.pos[0] < W:
                    viewer.city.set_city_center(viewer.screen_to_world(event.pos)); viewer.growing = True
                elif event.button == 3:
                    panning = True; pan_from = event.pos
            elif event.type == pygame.MOUSEBUTTONUP and event.button == 3:
                panning = False
            elif event.type == pygame.MOUSEMOTION and panning:
                dx = event.pos[0]-pan_from[0]; dy = event.pos[1]-pan_from[1]
                viewer.cam_offset[0] -= dx/viewer.cam_zoom; viewer.cam_offset[1] -= dy/viewer.cam_zoom
                pan_from = event.pos
            elif event.type == pygame.MOUSEWHEEL:
                before = viewer.screen_to_world(pygame.mouse.get_pos())
                viewer.cam_zoom = max(0.25, min(8.0, viewer.cam_zoom * (1.1 if event.y > 0 else 1/1.1)))
                after = viewer.screen_to_world(pygame.mouse.get_pos())
                viewer.cam_offset[0] += before[0]-after[0]; viewer.cam_offset[1] += before[1]-after[1]
        viewer.update()
        prev_clip = screen.get_clip()
        screen.set_clip(pygame.Rect(0, 0, W, H))
        viewer.draw(screen)
        screen.set_clip(prev_clip)
        status = [f"nodes {len(viewer.city.graph.nodes)}  edges {len(viewer.city.graph.edges)}",
                  f"agents {len(viewer.city.roads.agents)}  plots {len(viewer.city.plot_system.plots)}",
                  f"buildings {len(viewer.city.building_system.buildings)}", ""] + HELP
        panel.draw(screen, status)
        pygame.display.flip()
    pygame.quit()

if __name__ == "__main__":
    main()
