"""
Course Environment - A small deterministic side-scrolling platformer.

Stands in for the real host during training runs, demos and tests. The
course is a tile map (1 tile = 1 unit, y grows downward) with pits, spikes,
patrolling seekers and a goal column. Each step() is one 20 Hz tick.

Observation records use the same loose dictionary layout as the real host:
x, y, vx, vy, grounded, dashes_left, wallcheck, grab, progress (unit vector
toward the goal), enemies (flat [x, y, w, h, ...]) and a 15x15 tile grid
centred on the player.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import math

from core.codec import Tile, GRID_SIZE, MAX_ENTITIES

# Course legend
SOLID = '#'
SPIKE = '^'
START = 'S'
GOAL = 'G'
SEEKER = 'E'

DEFAULT_COURSE = [
    "........................................",
    "........................................",
    "........................................",
    "........................................",
    "........................................",
    "........................................",
    "..................##....................",
    "........................................",
    ".S...........................E........G.",
    "########..######.....#####^^######..####",
    "########..######.....#############..####",
    "########..######.....#############..####",
]

# Physics, in tiles and ticks
PLAYER_W = 0.75
PLAYER_H = 1.0
RUN_ACCEL = 0.15
MAX_RUN = 0.45
FRICTION = 0.6
GRAVITY = 0.09
MAX_FALL = 0.9
JUMP_SPEED = 0.75
DASH_SPEED = 0.9
DASH_TICKS = 3
CLIMB_SPEED = 0.2
MAX_DASHES = 1
SUBSTEP = 0.25

# Host reward constants
DEATH_PENALTY = -15.0
GOAL_REWARD = 25.0
LIVING_COST = -0.01
PROGRESS_SCALE = 1.0


@dataclass
class Seeker:
    """Enemy patrolling horizontally between two columns."""
    x: float
    y: float
    x_min: float
    x_max: float
    speed: float = 0.1
    width: float = 1.0
    height: float = 1.0

    def tick(self):
        self.x += self.speed
        if self.x <= self.x_min or self.x >= self.x_max:
            self.x = min(max(self.x, self.x_min), self.x_max)
            self.speed = -self.speed

    def overlaps(self, x: float, y: float, w: float, h: float) -> bool:
        return (x < self.x + self.width and x + w > self.x
                and y < self.y + self.height and y + h > self.y)


class CourseMap:
    """Tile grid parsed from an ASCII layout."""

    def __init__(self, layout: List[str], seeker_range: float = 3.0):
        widths = {len(row) for row in layout}
        if len(widths) != 1:
            raise ValueError("Course rows must all have the same width")
        self.width = widths.pop()
        self.height = len(layout)
        self.tiles: List[List[int]] = [[Tile.EMPTY] * self.width for _ in range(self.height)]
        self.start = (0.0, 0.0)
        self.goal_x = float(self.width - 1)
        self.seeker_spawns: List[Tuple[float, float, float, float]] = []

        for y, row in enumerate(layout):
            for x, ch in enumerate(row):
                if ch == SOLID:
                    self.tiles[y][x] = Tile.SOLID
                elif ch == SPIKE:
                    self.tiles[y][x] = Tile.SPIKE_UP
                elif ch == START:
                    self.start = (float(x), float(y))
                elif ch == GOAL:
                    self.goal_x = float(x)
                elif ch == SEEKER:
                    self.seeker_spawns.append(
                        (float(x), float(y), x - seeker_range, x + seeker_range))

    def tile_at(self, x: int, y: int) -> int:
        """Side edges are walls; above and below the map is open air."""
        if x < 0 or x >= self.width:
            return Tile.SOLID
        if y < 0 or y >= self.height:
            return Tile.EMPTY
        return self.tiles[y][x]

    def _box_tiles(self, x: float, y: float, w: float, h: float):
        eps = 1e-6
        for ty in range(math.floor(y), math.floor(y + h - eps) + 1):
            for tx in range(math.floor(x), math.floor(x + w - eps) + 1):
                yield self.tile_at(tx, ty)

    def box_hits_solid(self, x: float, y: float, w: float, h: float) -> bool:
        return any(t == Tile.SOLID for t in self._box_tiles(x, y, w, h))

    def box_hits_spike(self, x: float, y: float, w: float, h: float) -> bool:
        return any(Tile.SPIKE_UP <= t <= Tile.SPIKE_LEFT for t in self._box_tiles(x, y, w, h))

    def grid_around(self, x: float, y: float, size: int = GRID_SIZE) -> List[int]:
        """Row-major size x size tile codes centred on the tile containing (x, y)."""
        cx, cy = math.floor(x), math.floor(y)
        half = size // 2
        return [int(self.tile_at(cx + dx, cy + dy))
                for dy in range(-half, half + 1)
                for dx in range(-half, half + 1)]


class CourseEnv:
    """
    Gym-like platformer environment.

    step() takes the agent's named action set and returns
    (record, reward, done, info).
    """

    def __init__(self, layout: Optional[List[str]] = None, max_ticks: int = 400):
        self.course = CourseMap(layout or DEFAULT_COURSE)
        self.max_ticks = max_ticks
        self.reset()

    def reset(self) -> Dict:
        """Reset the player and seekers to their spawn points."""
        self.x, self.y = self.course.start
        self.vx = 0.0
        self.vy = 0.0
        self.facing = 1
        self.dashes_left = MAX_DASHES
        self.dash_ticks = 0
        self.grabbing = False
        self.tick = 0
        self.done = False
        self.seekers = [Seeker(sx, sy, lo, hi) for sx, sy, lo, hi in self.course.seeker_spawns]
        return self.observe()

    # ---------- state queries ----------

    @property
    def grounded(self) -> bool:
        return self.course.box_hits_solid(self.x, self.y + PLAYER_H, PLAYER_W, 0.05)

    @property
    def touching_wall(self) -> bool:
        return (self.course.box_hits_solid(self.x - 0.05, self.y, 0.05, PLAYER_H)
                or self.course.box_hits_solid(self.x + PLAYER_W, self.y, 0.05, PLAYER_H))

    def distance_to_goal(self) -> float:
        return abs(self.course.goal_x - self.x)

    def observe(self) -> Dict:
        dx = self.course.goal_x - self.x
        dy = self.course.start[1] - self.y
        norm = math.hypot(dx, dy) or 1.0

        enemies = []
        for s in self.seekers[:MAX_ENTITIES]:
            enemies.extend([s.x, s.y, s.width, s.height])

        return {
            'x': self.x,
            'y': self.y,
            'vx': self.vx,
            'vy': self.vy,
            'grounded': self.grounded,
            'dashes_left': self.dashes_left,
            'wallcheck': self.touching_wall,
            'grab': self.grabbing,
            'progress': (dx / norm, dy / norm),
            'enemies': enemies,
            'grid': self.course.grid_around(self.x + PLAYER_W / 2, self.y + PLAYER_H / 2),
        }

    # ---------- simulation ----------

    def _move_axis(self, dx: float, dy: float) -> bool:
        """Move in small substeps; returns True if a solid tile stopped the motion."""
        distance = abs(dx) + abs(dy)
        steps = max(1, math.ceil(distance / SUBSTEP))
        sx, sy = dx / steps, dy / steps
        for _ in range(steps):
            nx, ny = self.x + sx, self.y + sy
            if self.course.box_hits_solid(nx, ny, PLAYER_W, PLAYER_H):
                return True
            self.x, self.y = nx, ny
        return False

    def _apply_actions(self, actions: Dict[str, bool]):
        left = actions.get('left', False)
        right = actions.get('right', False)
        grounded = self.grounded

        if left and not right:
            self.vx -= RUN_ACCEL
            self.facing = -1
        elif right and not left:
            self.vx += RUN_ACCEL
            self.facing = 1
        else:
            self.vx *= FRICTION

        if self.dash_ticks == 0:
            self.vx = max(-MAX_RUN, min(MAX_RUN, self.vx))

        if actions.get('jump', False) and grounded:
            self.vy = -JUMP_SPEED

        if actions.get('dash', False) and self.dashes_left > 0 and self.dash_ticks == 0:
            self.dashes_left -= 1
            self.dash_ticks = DASH_TICKS
            self.vx = self.facing * DASH_SPEED
            self.vy = 0.0

        self.grabbing = bool(actions.get('grab', False)) and self.touching_wall
        if self.grabbing:
            self.vy = 0.0
            if actions.get('up', False):
                self.vy = -CLIMB_SPEED
            elif actions.get('down', False):
                self.vy = CLIMB_SPEED
        elif actions.get('down', False) and not grounded:
            self.vy += GRAVITY

    def step(self, actions: Dict[str, bool]) -> Tuple[Dict, float, bool, Dict]:
        if self.done:
            raise RuntimeError("Episode is over, call reset() before step()")

        before = self.distance_to_goal()
        self._apply_actions(actions)

        if self.dash_ticks > 0:
            self.dash_ticks -= 1
        elif not self.grabbing:
            self.vy = min(self.vy + GRAVITY, MAX_FALL)

        if self._move_axis(self.vx, 0.0):
            self.vx = 0.0
        if self._move_axis(0.0, self.vy):
            self.vy = 0.0
        if self.grounded:
            self.dashes_left = MAX_DASHES

        for s in self.seekers:
            s.tick()
        self.tick += 1

        died = (self.y > self.course.height
                or self.course.box_hits_spike(self.x, self.y, PLAYER_W, PLAYER_H)
                or any(s.overlaps(self.x, self.y, PLAYER_W, PLAYER_H) for s in self.seekers))
        reached_goal = not died and self.x + PLAYER_W >= self.course.goal_x
        truncated = not died and not reached_goal and self.tick >= self.max_ticks

        reward = LIVING_COST + PROGRESS_SCALE * (before - self.distance_to_goal())
        if died:
            reward += DEATH_PENALTY
        elif reached_goal:
            reward += GOAL_REWARD

        self.done = died or reached_goal or truncated
        info = {
            'tick': self.tick,
            'died': died,
            'reached_goal': reached_goal,
            'truncated': truncated,
            'distance': self.distance_to_goal(),
        }
        return self.observe(), reward, self.done, info

    def render(self) -> str:
        """ASCII view of the course with the player (P) and seekers (E)."""
        chars = {Tile.EMPTY: '.', Tile.SOLID: '#', Tile.SPIKE_UP: '^'}
        rows = [[chars.get(t, '^') for t in row] for row in self.course.tiles]
        for s in self.seekers:
            sx, sy = int(s.x), int(s.y)
            if 0 <= sy < self.course.height and 0 <= sx < self.course.width:
                rows[sy][sx] = 'E'
        px, py = int(self.x), int(self.y)
        if 0 <= py < self.course.height and 0 <= px < self.course.width:
            rows[py][px] = 'P'
        return '\n'.join(''.join(r) for r in rows)
