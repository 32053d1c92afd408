"""Visual profile helpers for drawing one surface into another, transformed."""
from dataclasses import dataclass, replace
import pygame


@dataclass
class VisualProfile:
    scale_x: float = 1.0
    scale_y: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    angle: float = 0.0
    alpha: float = 1.0
    flip_x: bool = False
    flip_y: bool = False

    def with_changes(self, **changes) -> "VisualProfile":
        return replace(self, **changes)


IDENTITY = VisualProfile()


def apply_visual_panel(base_surface: pygame.Surface, logical_surface: pygame.Surface,
                       window_rect: pygame.Rect, visual: VisualProfile, special_flags: int = 0) -> None:
    """Draw logical_surface into base_surface through the visual profile.

    The panel is scaled to window_rect times the profile's per-axis scale,
    flipped, rotated about its center, faded by alpha, then centered on
    window_rect plus the offsets. A fully transparent profile draws nothing.
    """
    if visual.alpha <= 0.0:
        return

    target_width = max(1, int(window_rect.width * abs(visual.scale_x)))
    target_height = max(1, int(window_rect.height * abs(visual.scale_y)))
    if (target_width, target_height) == logical_surface.get_size():
        transformed = logical_surface.copy()
    else:
        transformed = pygame.transform.scale(logical_surface, (target_width, target_height))

    if visual.flip_x or visual.flip_y:
        transformed = pygame.transform.flip(transformed, visual.flip_x, visual.flip_y)

    if visual.angle:
        transformed = pygame.transform.rotozoom(transformed, visual.angle, 1.0)

    if visual.alpha < 1.0:
        transformed.set_alpha(max(0, min(255, int(visual.alpha * 255))))

    target_rect = transformed.get_rect()
    target_rect.center = (
        int(window_rect.centerx + visual.offset_x),
        int(window_rect.centery + visual.offset_y),
    )
    base_surface.blit(transformed, target_rect, special_flags=special_flags)
