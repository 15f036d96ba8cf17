import gymnasium as gym
from gymnasium.error import ResetNeeded
from gymnasium.spaces import MultiDiscrete
import numpy as np
import pygame
import pygame.gfxdraw
import math
import numbers
import os

if __name__ != "__main__":
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")


# 1 = wall, 0 = path. 15 columns x 13 rows.
MAZE_LAYOUT = (
    "111111111111111",
    "100000000000001",
    "101111011111101",
    "101000010000101",
    "101011111110101",
    "101010000010101",
    "101010111010101",
    "101010100010101",
    "101010101010101",
    "101000001000101",
    "101111011111101",
    "100000010000001",
    "111111111111111",
)

# (dx, dy) for movement actions 1-4: up, down, left, right
MOVEMENT_DIRECTIONS = {
    1: (0, -1),
    2: (0, 1),
    3: (-1, 0),
    4: (1, 0),
}


def _whole_number(name, value):
    """Return value as an int, rejecting anything with a fractional part."""
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real) and float(value).is_integer():
        return int(value)
    raise ValueError(f"{name} must be a whole number, got {value!r}")


class Maze:
    """Read-only wall grid. Anything outside the grid counts as a wall."""

    def __init__(self, layout=MAZE_LAYOUT):
        grid = np.array([[int(c) for c in row] for row in layout], dtype=np.int8)
        grid.setflags(write=False)
        self.grid = grid
        self.rows, self.cols = grid.shape

    def is_wall(self, row, col):
        if row < 0 or row >= self.rows or col < 0 or col >= self.cols:
            return True
        return self.grid[row, col] == 1

    def open_cells(self):
        return [(r, c) for r in range(self.rows) for c in range(self.cols) if self.grid[r, c] == 0]


class GameEnv(gym.Env):
    metadata = {"render_modes": ["rgb_array"], "render_fps": 60}

    user_guide = (
        "Controls: Arrow keys to steer the chihuahua. Collect every toy before the clock runs out "
        "and don't let a parrot catch you."
    )

    game_description = (
        "A maze-chase arcade game. A long-haired chihuahua dashes around a fixed maze collecting "
        "teddies and balls while wandering parrots try to catch it, all against a 60 second countdown."
    )

    auto_advance = True

    # --- Constants ---
    # Colors
    COLOR_BG = (232, 240, 254)
    COLOR_WALL = (55, 71, 133)
    COLOR_WALL_EDGE = (82, 101, 170)
    COLOR_PATH = (223, 231, 253)
    COLOR_HUD = (38, 50, 97)
    COLOR_UI_TEXT = (240, 240, 250)
    COLOR_DOG = (214, 160, 96)
    COLOR_DOG_DARK = (150, 98, 48)
    COLOR_PARROT = (46, 170, 84)
    COLOR_PARROT_WING = (24, 110, 52)
    COLOR_BEAK = (250, 190, 40)
    COLOR_TEDDY = (150, 96, 52)
    COLOR_TEDDY_MUZZLE = (222, 184, 135)
    COLOR_BALL = (230, 60, 60)
    COLOR_BALL_STRIPE = (255, 255, 255)
    COLOR_EYE = (20, 20, 20)
    COLOR_WIN = (120, 255, 140)
    COLOR_LOSE = (255, 120, 120)

    # Maze Dimensions
    TILE_SIZE = 32
    MAZE_ROWS = len(MAZE_LAYOUT)
    MAZE_COLS = len(MAZE_LAYOUT[0])
    HUD_HEIGHT = 32
    WIDTH = MAZE_COLS * TILE_SIZE
    HEIGHT = HUD_HEIGHT + MAZE_ROWS * TILE_SIZE

    # Game Parameters
    FPS = 60
    TIME_LIMIT = 60  # seconds
    TOY_COUNT = 10
    TOY_TYPES = ("teddy", "ball")
    PLAYER_START = (1, 1)  # (row, col)
    PARROT_SPAWNS = ((11, 1),)
    PLAYER_SPEED = 2  # pixels per frame, must divide TILE_SIZE
    PARROT_SPEED = 1
    PARROT_START_DELAY = 3  # seconds

    # Rewards
    TOY_REWARD = 1.0
    WIN_REWARD = 10.0
    LOSS_REWARD = -10.0

    # Session states
    STATE_IDLE = "idle"
    STATE_RUNNING = "running"
    STATE_WON = "won"
    STATE_LOST = "lost"

    OPTION_KEYS = ("time_limit", "toy_count", "parrot_start_delay", "parrot_spawns")

    def __init__(self, render_mode="rgb_array"):
        super().__init__()
        self.render_mode = render_mode

        self.observation_space = gym.spaces.Box(
            low=0, high=255, shape=(self.HEIGHT, self.WIDTH, 3), dtype=np.uint8
        )
        self.action_space = MultiDiscrete([5, 2, 2])

        pygame.init()
        pygame.font.init()
        self.screen = pygame.Surface((self.WIDTH, self.HEIGHT))
        self.clock = pygame.time.Clock()
        self.font_ui = pygame.font.Font(None, 26)
        self.font_banner = pygame.font.Font(None, 56)

        self.maze = Maze()
        self.player = None
        self.parrots = []
        self.toys = []

        self.steps = 0
        self.score = 0
        self.time_left = self.TIME_LIMIT
        self.frame_in_second = 0
        self.running = False
        self.state = self.STATE_IDLE

        # Per-episode settings, overridable through reset(options=...)
        self.time_limit = self.TIME_LIMIT
        self.toy_count = self.TOY_COUNT
        self.parrot_start_delay = self.PARROT_START_DELAY
        self.parrot_spawns = self.PARROT_SPAWNS

    @property
    def game_over(self):
        return self.state in (self.STATE_WON, self.STATE_LOST)

    def _apply_options(self, options):
        options = dict(options or {})
        unknown = sorted(set(options) - set(self.OPTION_KEYS))
        if unknown:
            raise ValueError(f"Unknown reset options: {unknown}")

        time_limit = _whole_number("time_limit", options.get("time_limit", self.TIME_LIMIT))
        if time_limit <= 0:
            raise ValueError(f"time_limit must be positive, got {time_limit}")

        toy_count = _whole_number("toy_count", options.get("toy_count", self.TOY_COUNT))
        if toy_count < 1:
            raise ValueError(f"toy_count must be at least 1, got {toy_count}")

        parrot_start_delay = options.get("parrot_start_delay", self.PARROT_START_DELAY)
        if parrot_start_delay < 0:
            raise ValueError(f"parrot_start_delay cannot be negative, got {parrot_start_delay}")

        parrot_spawns = tuple(
            (_whole_number("parrot spawn row", row), _whole_number("parrot spawn col", col))
            for row, col in options.get("parrot_spawns", self.PARROT_SPAWNS)
        )
        for row, col in parrot_spawns:
            if self.maze.is_wall(row, col):
                raise ValueError(f"Parrot spawn ({row}, {col}) is not a walkable cell")

        self.time_limit = time_limit
        self.toy_count = toy_count
        self.parrot_start_delay = parrot_start_delay
        self.parrot_spawns = parrot_spawns

    def _populate_maze(self):
        start_row, start_col = self.PLAYER_START
        self.player = Player(start_col * self.TILE_SIZE, start_row * self.TILE_SIZE, self.PLAYER_SPEED)

        delay_frames = int(round(self.parrot_start_delay * self.FPS))
        self.parrots = [
            Parrot(col * self.TILE_SIZE, row * self.TILE_SIZE, self.PARROT_SPEED, delay_frames)
            for row, col in self.parrot_spawns
        ]

        # Toys go on random free cells, never on the chihuahua's start
        free_cells = [cell for cell in self.maze.open_cells() if cell != self.PLAYER_START]
        self.np_random.shuffle(free_cells)
        toy_count = min(self.toy_count, len(free_cells))
        self.toys = [
            Toy(row, col, self.TOY_TYPES[i % len(self.TOY_TYPES)])
            for i, (row, col) in enumerate(free_cells[:toy_count])
        ]

    def reset(self, seed=None, options=None):
        super().reset(seed=seed)
        self._apply_options(options)

        self._populate_maze()

        self.steps = 0
        self.score = 0
        self.time_left = self.time_limit
        self.frame_in_second = 0
        self.running = True
        self.state = self.STATE_RUNNING

        return self._get_observation(), self._get_info()

    def step(self, action):
        if self.state == self.STATE_IDLE:
            raise ResetNeeded("Cannot call step() before reset().")
        if self.game_over:
            return self._get_observation(), 0.0, True, False, self._get_info()

        movement = int(action[0])
        self.steps += 1
        reward = 0.0

        # --- Update Player ---
        self.player.set_next_direction(movement)
        self.player.update(self.maze)

        # --- Toy Collection ---
        reward += self._collect_toys()
        if all(toy.collected for toy in self.toys):
            self._end_game(won=True)
            reward += self.WIN_REWARD
            return self._get_observation(), reward, True, False, self._get_info()

        # --- Update Parrots ---
        for parrot in self.parrots:
            parrot.update(self.maze, self.np_random)
            if self.check_collision(self.player, parrot):
                self._end_game(won=False)
                reward += self.LOSS_REWARD
                return self._get_observation(), reward, True, False, self._get_info()

        # --- Countdown ---
        self.frame_in_second += 1
        if self.frame_in_second >= self.FPS:
            self.frame_in_second = 0
            self.time_left -= 1
            if self.time_left <= 0:
                self.time_left = 0
                self._end_game(won=False)
                reward += self.LOSS_REWARD

        return self._get_observation(), reward, self.game_over, False, self._get_info()

    def _collect_toys(self):
        row, col = self.player.cell
        reward = 0.0
        for toy in self.toys:
            if not toy.collected and toy.row == row and toy.col == col:
                toy.collected = True
                self.score += 1
                reward += self.TOY_REWARD
        return reward

    def _end_game(self, won):
        self.running = False
        self.state = self.STATE_WON if won else self.STATE_LOST

    @staticmethod
    def check_collision(a, b):
        """Axis-aligned box overlap. Boxes that only touch do not collide."""
        size = GameEnv.TILE_SIZE
        return a.x < b.x + size and a.x + size > b.x and a.y < b.y + size and a.y + size > b.y

    def _get_observation(self):
        self.screen.fill(self.COLOR_BG)
        self._render_game()
        self._render_ui()

        arr = pygame.surfarray.array3d(self.screen)
        return np.transpose(arr, (1, 0, 2)).astype(np.uint8)

    def _get_info(self):
        return {
            "score": self.score,
            "steps": self.steps,
            "time_left": self.time_left,
            "toys_left": sum(1 for toy in self.toys if not toy.collected),
            "state": self.state,
            "player_cell": self.player.cell if self.player else None,
            "parrot_cells": [parrot.cell for parrot in self.parrots],
        }

    def render(self):
        return self._get_observation()

    def _render_game(self):
        size = self.TILE_SIZE
        top = self.HUD_HEIGHT

        # Draw Maze
        for row in range(self.maze.rows):
            for col in range(self.maze.cols):
                rect = pygame.Rect(col * size, top + row * size, size, size)
                if self.maze.is_wall(row, col):
                    pygame.draw.rect(self.screen, self.COLOR_WALL, rect)
                    if not self.maze.is_wall(row + 1, col):
                        pygame.draw.rect(self.screen, self.COLOR_WALL_EDGE, (rect.x, rect.bottom - 3, size, 3))
                else:
                    pygame.draw.rect(self.screen, self.COLOR_PATH, rect)

        # Draw Toys
        for toy in self.toys:
            if not toy.collected:
                toy.draw(self.screen, size, top)

        # Draw Parrots
        for parrot in self.parrots:
            parrot.draw(self.screen, size, top, self.steps)

        # Draw Player
        if self.player is not None:
            self.player.draw(self.screen, size, top, self.steps)

    def _render_ui(self):
        pygame.draw.rect(self.screen, self.COLOR_HUD, (0, 0, self.WIDTH, self.HUD_HEIGHT))

        score_text = self.font_ui.render(f"SCORE: {self.score}", True, self.COLOR_UI_TEXT)
        self.screen.blit(score_text, score_text.get_rect(midleft=(10, self.HUD_HEIGHT // 2)))

        time_text = self.font_ui.render(f"TIME: {self.time_left}", True, self.COLOR_UI_TEXT)
        self.screen.blit(time_text, time_text.get_rect(midright=(self.WIDTH - 10, self.HUD_HEIGHT // 2)))

        if self.game_over:
            overlay = pygame.Surface((self.WIDTH, self.HEIGHT), pygame.SRCALPHA)
            overlay.fill((0, 0, 0, 150))
            self.screen.blit(overlay, (0, 0))

            if self.state == self.STATE_WON:
                title, color = "YOU WIN!", self.COLOR_WIN
            else:
                title, color = "GAME OVER", self.COLOR_LOSE
            center_y = self.HEIGHT // 2
            title_text = self.font_banner.render(title, True, color)
            self.screen.blit(title_text, title_text.get_rect(center=(self.WIDTH // 2, center_y - 20)))
            final_text = self.font_ui.render(f"Toys collected: {self.score}", True, self.COLOR_UI_TEXT)
            self.screen.blit(final_text, final_text.get_rect(center=(self.WIDTH // 2, center_y + 20)))

    def close(self):
        pygame.quit()

    def validate_implementation(self):
        # Test action space
        assert self.action_space.shape == (3,)
        assert self.action_space.nvec.tolist() == [5, 2, 2]

        # Test observation space
        test_obs = self._get_observation()
        assert test_obs.shape == (self.HEIGHT, self.WIDTH, 3)
        assert test_obs.dtype == np.uint8

        # Test reset
        obs, info = self.reset()
        assert obs.shape == (self.HEIGHT, self.WIDTH, 3)
        assert isinstance(info, dict)

        # Test step
        test_action = self.action_space.sample()
        obs, reward, term, trunc, info = self.step(test_action)
        assert obs.shape == (self.HEIGHT, self.WIDTH, 3)
        assert isinstance(reward, (int, float))
        assert isinstance(term, bool)
        assert trunc == False
        assert isinstance(info, dict)

        print("✓ Implementation validated successfully")


class Player:
    def __init__(self, x, y, speed):
        self.x, self.y = int(x), int(y)
        self.speed = speed
        self.direction = (0, 0)
        self.next_direction = (0, 0)

    @property
    def cell(self):
        """(row, col) of the tile the sprite is mostly over."""
        half = GameEnv.TILE_SIZE // 2
        return (self.y + half) // GameEnv.TILE_SIZE, (self.x + half) // GameEnv.TILE_SIZE

    def is_aligned(self):
        return self.x % GameEnv.TILE_SIZE == 0 and self.y % GameEnv.TILE_SIZE == 0

    def set_next_direction(self, movement_action):
        if movement_action in MOVEMENT_DIRECTIONS:
            self.next_direction = MOVEMENT_DIRECTIONS[movement_action]

    def _try_change_direction(self, maze):
        if self.next_direction == (0, 0) or not self.is_aligned():
            return
        row, col = self.cell
        dx, dy = self.next_direction
        if not maze.is_wall(row + dy, col + dx):
            self.direction = self.next_direction

    def _snap(self, value):
        size = GameEnv.TILE_SIZE
        return (value + size // 2) // size * size

    def _move(self, maze):
        """Move one frame, checking each axis against the walls ahead. Returns True if blocked."""
        size = GameEnv.TILE_SIZE
        dx, dy = self.direction
        new_x = self.x + dx * self.speed
        new_y = self.y + dy * self.speed
        blocked = False

        # Horizontal
        if dx != 0:
            col = (new_x + size - 1) // size if dx > 0 else new_x // size
            row_top = self.y // size
            row_bottom = (self.y + size - 1) // size
            if maze.is_wall(row_top, col) or maze.is_wall(row_bottom, col):
                new_x = self._snap(self.x)
                dx = 0
                blocked = True

        # Vertical
        if dy != 0:
            row = (new_y + size - 1) // size if dy > 0 else new_y // size
            col_left = self.x // size
            col_right = (self.x + size - 1) // size
            if maze.is_wall(row, col_left) or maze.is_wall(row, col_right):
                new_y = self._snap(self.y)
                dy = 0
                blocked = True

        self.x, self.y = new_x, new_y
        self.direction = (dx, dy)
        return blocked

    def update(self, maze):
        self._try_change_direction(maze)
        self._move(maze)

    def draw(self, surface, tile_size, top, steps):
        cx = self.x + tile_size // 2
        cy = top + self.y + tile_size // 2
        facing = self.direction if self.direction != (0, 0) else (1, 0)

        # Long fur body
        body = pygame.Rect(0, 0, tile_size - 6, tile_size - 12)
        body.center = (cx, cy + 3)
        pygame.draw.ellipse(surface, GameEnv.COLOR_DOG, body)

        # Head with big ears, bobbing while running
        bob = int(math.sin(steps * 0.6) * 1.5) if self.direction != (0, 0) else 0
        hx = cx + facing[0] * 7
        hy = cy - 5 + facing[1] * 5 + bob
        for side in (-1, 1):
            ear = [(hx + side * 3, hy - 4), (hx + side * 10, hy - 13), (hx + side * 9, hy - 1)]
            pygame.draw.polygon(surface, GameEnv.COLOR_DOG_DARK, ear)
        pygame.gfxdraw.filled_circle(surface, hx, hy, 7, GameEnv.COLOR_DOG)
        pygame.gfxdraw.aacircle(surface, hx, hy, 7, GameEnv.COLOR_DOG_DARK)
        pygame.gfxdraw.filled_circle(surface, hx + facing[0] * 3, hy - 1 + facing[1] * 3, 2, GameEnv.COLOR_EYE)


class Parrot(Player):
    DIRECTIONS = ((1, 0), (-1, 0), (0, 1), (0, -1))

    def __init__(self, x, y, speed, spawn_delay):
        super().__init__(x, y, speed)
        self.spawn_delay = spawn_delay  # frames left before the parrot starts moving

    def choose_direction(self, maze, np_random):
        row, col = self.cell
        reverse = (-self.direction[0], -self.direction[1])
        possible = [(dx, dy) for dx, dy in self.DIRECTIONS if not maze.is_wall(row + dy, col + dx)]
        candidates = [d for d in possible if d != reverse] or possible
        if not candidates:
            self.direction = (0, 0)
            return
        self.direction = candidates[np_random.integers(len(candidates))]

    def update(self, maze, np_random):
        if self.spawn_delay > 0:
            self.spawn_delay -= 1
            return
        if self.is_aligned():
            self.choose_direction(maze, np_random)
        if self._move(maze):
            self.direction = (0, 0)

    def draw(self, surface, tile_size, top, steps):
        cx = self.x + tile_size // 2
        cy = top + self.y + tile_size // 2
        facing = -1 if self.direction[0] < 0 else 1
        flap = 3 if (steps // 8) % 2 == 0 and self.spawn_delay == 0 else 0

        pygame.gfxdraw.filled_circle(surface, cx, cy + 2, 11, GameEnv.COLOR_PARROT)
        pygame.gfxdraw.aacircle(surface, cx, cy + 2, 11, GameEnv.COLOR_PARROT_WING)
        wing = [(cx - facing * 2, cy), (cx - facing * 12, cy - 4 - flap), (cx - facing * 8, cy + 9)]
        pygame.draw.polygon(surface, GameEnv.COLOR_PARROT_WING, wing)
        beak = [(cx + facing * 8, cy - 4), (cx + facing * 15, cy), (cx + facing * 8, cy + 3)]
        pygame.draw.polygon(surface, GameEnv.COLOR_BEAK, beak)
        pygame.gfxdraw.filled_circle(surface, cx + facing * 4, cy - 4, 2, GameEnv.COLOR_EYE)


class Toy:
    def __init__(self, row, col, toy_type):
        self.row = row
        self.col = col
        self.type = toy_type  # 'teddy' or 'ball'
        self.collected = False

    def draw(self, surface, tile_size, top):
        cx = self.col * tile_size + tile_size // 2
        cy = top + self.row * tile_size + tile_size // 2
        radius = int(tile_size * 0.3)

        if self.type == "teddy":
            for side in (-1, 1):
                pygame.gfxdraw.filled_circle(surface, cx + side * radius, cy - radius + 2, radius // 2, GameEnv.COLOR_TEDDY)
            pygame.gfxdraw.filled_circle(surface, cx, cy, radius, GameEnv.COLOR_TEDDY)
            pygame.gfxdraw.filled_circle(surface, cx, cy + 3, radius // 2, GameEnv.COLOR_TEDDY_MUZZLE)
            pygame.gfxdraw.filled_circle(surface, cx - 3, cy - 3, 1, GameEnv.COLOR_EYE)
            pygame.gfxdraw.filled_circle(surface, cx + 3, cy - 3, 1, GameEnv.COLOR_EYE)
        else:
            pygame.gfxdraw.filled_circle(surface, cx, cy, radius, GameEnv.COLOR_BALL)
            pygame.gfxdraw.aacircle(surface, cx, cy, radius, GameEnv.COLOR_BALL)
            pygame.draw.line(surface, GameEnv.COLOR_BALL_STRIPE, (cx - radius + 2, cy), (cx + radius - 2, cy), 2)


if __name__ == "__main__":
    # This block allows you to play the game manually
    env = GameEnv()
    obs, info = env.reset()

    pygame.display.set_caption("Chihuahua Toy Dash")
    screen = pygame.display.set_mode((env.WIDTH, env.HEIGHT))

    key_to_movement = {
        pygame.K_UP: 1,
        pygame.K_DOWN: 2,
        pygame.K_LEFT: 3,
        pygame.K_RIGHT: 4,
    }

    reported = False
    running = True
    while running:
        movement = 0
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.KEYDOWN:
                if event.key in key_to_movement:
                    movement = key_to_movement[event.key]
                elif event.key == pygame.K_r:  # Press R to restart
                    obs, info = env.reset()
                    reported = False
                    print("Game reset.")
                elif event.key == pygame.K_q:
                    running = False

        obs, reward, terminated, truncated, info = env.step([movement, 0, 0])

        if terminated and not reported:
            print("=" * 20)
            if info["state"] == GameEnv.STATE_WON:
                print(f"YOU WIN! Collected every toy with {info['time_left']} seconds left.")
            else:
                print("GAME OVER!")
            print(f"Final Score: {info['score']}")
            print("Press 'R' to play again.")
            print("=" * 20)
            reported = True

        # The obs is already the rendered frame, so we just need to display it
        surf = pygame.surfarray.make_surface(np.transpose(obs, (1, 0, 2)))
        screen.blit(surf, (0, 0))
        pygame.display.flip()

        env.clock.tick(env.FPS)

    env.close()
