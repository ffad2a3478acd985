import pygame

TEXT_COLOR   = (30, 30, 30)
MUTED_COLOR  = (110, 110, 110)
TRACK_COLOR  = (220, 220, 220)
KNOB_COLOR   = (80, 80, 80)
DIRTY_COLOR  = (200, 90, 40)
CHOICE_BG    = (238, 238, 238)

class Control:
    """Panel row bound to one PARAMS key. Edits go to the panel's pending dict."""
    def __init__(self, label, key, value):
        self.label=label; self.key=key; self.value=value
        self.rect = pygame.Rect(0,0,0,0); self.panel=None

    def commit(self, value):
        if value == self.value: return
        self.value = value
        if self.panel is not None: self.panel.pending[self.key] = value

    def caption(self): return f"{self.label}: {self.value}"

    def text_color(self):
        return DIRTY_COLOR if self.panel is not None and self.key in self.panel.pending else TEXT_COLOR

class Slider(Control):
    def __init__(self, label, key, lo, hi, value, step=0.01, integer=False):
        super().__init__(label, key, int(value) if integer else float(value))
        self.lo=float(lo); self.hi=float(hi); self.step=float(step); self.integer=integer
        self.dragging=False

    def caption(self):
        return f"{self.label}: {self.value}" if self.integer else f"{self.label}: {self.value:.2f}"

    def value_at(self, px, x, width):
        t = max(0.0, min(1.0, (px - x)/max(1, width)))
        v = self.lo + round(t*(self.hi-self.lo)/self.step)*self.step
        v = max(self.lo, min(self.hi, v))
        return int(round(v)) if self.integer else v

    def draw(self, screen, font, x, y, width):
        label = font.render(self.caption(), True, self.text_color())
        screen.blit(label, (x,y))
        ty = int(y + label.get_height() + 6)
        pygame.draw.rect(screen, TRACK_COLOR, pygame.Rect(x, ty, width, 6), border_radius=3)
        span = self.hi - self.lo
        t = (self.value - self.lo)/span if span else 0.0
        pygame.draw.circle(screen, KNOB_COLOR, (int(x + t*width), ty+3), 7)
        self.rect = pygame.Rect(x, y, width, label.get_height() + 20)
        return self.rect.bottom + 10

    def handle_event(self, event, x, width):
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1 and self.rect.collidepoint(*event.pos):
            self.dragging=True
            self.commit(self.value_at(event.pos[0], x, width)); return True
        if event.type == pygame.MOUSEBUTTONUP and event.button == 1:
            self.dragging=False
        elif event.type == pygame.MOUSEMOTION and self.dragging:
            self.commit(self.value_at(event.pos[0], x, width)); return True
        return False

class Choice(Control):
    """Click cycles through options (strategy, water feature, on/off)."""
    def __init__(self, label, key, options, value):
        super().__init__(label, key, value)
        self.options=list(options)

    def draw(self, screen, font, x, y, width):
        text = font.render(self.caption() + "  >", True, self.text_color())
        self.rect = pygame.Rect(x, y, width, text.get_height() + 8)
        pygame.draw.rect(screen, CHOICE_BG, self.rect, border_radius=3)
        screen.blit(text, (x+6, y+4))
        return self.rect.bottom + 10

    def handle_event(self, event, x, width):
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1 and self.rect.collidepoint(*event.pos):
            i = self.options.index(self.value) if self.value in self.options else -1
            self.commit(self.options[(i+1) % len(self.options)])
            return True
        return False

class ParamPanel:
    """Scrollable sidebar of parameter controls plus free status lines.

    Changed values collect in `pending` (drawn highlighted) until the app
    applies them with take_pending().
    """
    def __init__(self, rect, font):
        self.rect = pygame.Rect(rect); self.font = font
        self.controls=[]; self.pending={}
        self.scroll=0; self.content_h=0

    def add(self, ctl):
        ctl.panel = self; self.controls.append(ctl)
        return ctl

    def take_pending(self):
        out = self.pending; self.pending = {}
        return out

    def _inner(self): return self.rect.left + 20, self.rect.width - 40

    def draw(self, screen, lines=()):
        pygame.draw.rect(screen, (250,250,250), self.rect)
        pygame.draw.line(screen, (200,200,200), self.rect.topleft, self.rect.bottomleft, 2)
        x, w = self._inner(); y = self.rect.top + 20 - self.scroll
        prev = screen.get_clip(); screen.set_clip(self.rect)
        for ctl in self.controls:
            y = ctl.draw(screen, self.font, x, y, w)
        if self.pending:
            surf = self.font.render(f"{len(self.pending)} change(s), [R] to apply", True, DIRTY_COLOR)
            screen.blit(surf, (x, y)); y += surf.get_height() + 8
        for line in lines:
            surf = self.font.render(line, True, MUTED_COLOR)
            screen.blit(surf, (x, y)); y += surf.get_height() + 4
        self.content_h = y + self.scroll - self.rect.top
        screen.set_clip(prev)

    def handle_event(self, event):
        inside = self.rect.collidepoint(*pygame.mouse.get_pos())
        if event.type == pygame.MOUSEWHEEL:
            if not inside: return False
            self.scroll = max(0, min(max(0, self.content_h - self.rect.height), self.scroll - event.y*20))
            return True
        if event.type in (pygame.MOUSEBUTTONDOWN, pygame.MOUSEMOTION) and not inside:
            return False
        if event.type not in (pygame.MOUSEBUTTONDOWN, pygame.MOUSEBUTTONUP, pygame.MOUSEMOTION):
            return False
        x, w = self._inner(); used = False
        for ctl in self.controls:
            used = ctl.handle_event(event, x, w) or used
        return used
