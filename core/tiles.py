from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, NamedTuple, Tuple


TILE_SIZE = 8
TEXELS_PER_TILE = TILE_SIZE * TILE_SIZE
TILES_PER_BLOCK = 256
CHARBLOCK_COUNT = 6
BG_CHARBLOCKS = 4
TILES_PER_ROW = 32
TILE_ROWS = CHARBLOCK_COUNT * TILES_PER_BLOCK // TILES_PER_ROW
IMAGE_WIDTH = TILES_PER_ROW * TILE_SIZE
IMAGE_HEIGHT = TILE_ROWS * TILE_SIZE
CHARBLOCK_SIZE = TILES_PER_BLOCK * TEXELS_PER_TILE

PALETTE_ENTRIES = 256
PALETTE_ENTRY_SIZE = 4
CHANNEL_ORDERS = {"bgr", "rgb"}


class Color(NamedTuple):
    red: int
    green: int
    blue: int

    def css(self) -> str:
        return f"rgb({self.red},{self.green},{self.blue})"


@dataclass
class PixelBuffer:
    width: int = IMAGE_WIDTH
    height: int = IMAGE_HEIGHT
    data: bytearray = field(default_factory=bytearray)

    def __post_init__(self) -> None:
        if not self.data:
            self.data = bytearray(self.width * self.height * 4)

    def _offset(self, row: int, col: int) -> int:
        return (row * self.width + col) * 4

    def set_pixel(self, row: int, col: int, color: Color) -> None:
        offset = self._offset(row, col)
        self.data[offset : offset + 4] = bytes((color.red, color.green, color.blue, 0xFF))

    def pixel(self, row: int, col: int) -> Tuple[int, int, int, int]:
        offset = self._offset(row, col)
        r, g, b, a = self.data[offset : offset + 4]
        return r, g, b, a


def decode_color(entry: bytes, order: str = "bgr") -> Color:
    # Entries are stored blue, green, red, alpha; "rgb" reads the first three the other way round.
    first, second, third = entry[0], entry[1], entry[2]
    if order == "rgb":
        return Color(first, second, third)
    return Color(red=third, green=second, blue=first)


def read_palette(memory, base: int, order: str = "bgr") -> List[Color]:
    colors = []
    for index in range(PALETTE_ENTRIES):
        offset = base + index * PALETTE_ENTRY_SIZE
        colors.append(decode_color(bytes(memory[offset : offset + PALETTE_ENTRY_SIZE]), order))
    return colors


def tile_pixel(charblock: int, tile: int, texel: int) -> Tuple[int, int]:
    global_tile = charblock * TILES_PER_BLOCK + tile
    tile_row, tile_col = divmod(global_tile, TILES_PER_ROW)
    row_in_tile, col_in_tile = divmod(texel, TILE_SIZE)
    return tile_row * TILE_SIZE + row_in_tile, tile_col * TILE_SIZE + col_in_tile


def render_tiles(
    memory,
    vram_base: int,
    bg_palette_base: int,
    sprite_palette_base: int,
    order: str = "bgr",
) -> PixelBuffer:
    """Decode all six charblocks as 8bpp tiles into one RGBA image.

    Charblocks 0-3 index the background palette, 4-5 the sprite palette.
    Tiles are laid out row-major, 32 per row, giving a 256x384 image.
    """
    bg_palette = read_palette(memory, bg_palette_base, order)
    sprite_palette = read_palette(memory, sprite_palette_base, order)
    buffer = PixelBuffer()
    for charblock in range(CHARBLOCK_COUNT):
        palette = bg_palette if charblock < BG_CHARBLOCKS else sprite_palette
        block_base = vram_base + charblock * CHARBLOCK_SIZE
        for tile in range(TILES_PER_BLOCK):
            tile_base = block_base + tile * TEXELS_PER_TILE
            texels = memory[tile_base : tile_base + TEXELS_PER_TILE]
            for texel, index in enumerate(texels):
                row, col = tile_pixel(charblock, tile, texel)
                buffer.set_pixel(row, col, palette[index])
    return buffer
