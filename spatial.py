import math
from collections import defaultdict
from geometry import rects_overlap

class SpatialHash:
    """Uniform grid. Rects are (x, y, w, h); an item is filed under every cell its rect spans.

    Same insert/query shape as a quadtree: query appends matching payloads to out.
    Payloads must be hashable (ids or objects).
    """
    def __init__(self, cell_size=50.0):
        self.cell = float(cell_size)
        self.cells = defaultdict(list)
        self._where = {}

    def _keys(self, rect):
        x,y,w,h = rect; c = self.cell
        x0 = int(math.floor(x/c)); y0 = int(math.floor(y/c))
        x1 = int(math.floor((x+w)/c)); y1 = int(math.floor((y+h)/c))
        return [(i,j) for i in range(x0, x1+1) for j in range(y0, y1+1)]

    def insert(self, rect, payload):
        if payload in self._where: self.remove(payload)
        keys = self._keys(rect)
        for k in keys: self.cells[k].append((rect, payload))
        self._where[payload] = keys

    def remove(self, payload):
        keys = self._where.pop(payload, None)
        if keys is None: return False
        for k in keys:
            bucket = self.cells.get(k)
            if not bucket: continue
            bucket[:] = [it for it in bucket if it[1] != payload]
            if not bucket: del self.cells[k]
        return True

    def query(self, rect, out):
        seen = set()
        for k in self._keys(rect):
            for r,p in self.cells.get(k, ()):
                if p in seen: continue
                if rects_overlap(r, rect):
                    seen.add(p); out.append(p)
        return out

    def query_point(self, pt, radius, out):
        return self.query((pt[0]-radius, pt[1]-radius, radius*2, radius*2), out)

    def clear(self):
        self.cells.clear(); self._where.clear()

    def __len__(self): return len(self._where)
    def __contains__(self, payload): return payload in self._where
