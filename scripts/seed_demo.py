"""
Prepare a local development setup:
- draw placeholder preset images for the mock producer (if missing)
- create a demo account with credits
- print a bearer token for it

Usage: python scripts/seed_demo.py [email] [credits]
"""
import asyncio
import sys

from PIL import Image, ImageDraw, ImageOps

from colorgen.core.container import Container
from colorgen.core.exceptions import InvalidInput
from colorgen.core.producers.mock_producer import PRESET_NAMES
from colorgen.core.repositories.account_repo import AccountRepository
from colorgen.core.security import create_access_token
from colorgen.database import init_db, session_scope

PRESET_COLORS = {
    "spider-man": (200, 30, 40),
    "cartoon": (250, 180, 40),
    "cat": (150, 110, 80),
    "mario": (220, 40, 40),
    "flower": (230, 90, 170),
    "robot": (120, 140, 160),
}


def draw_preset(name: str):
    """Colour variant: filled shapes; default variant: their black outline"""
    fill = PRESET_COLORS.get(name, (100, 160, 220))
    color = Image.new("RGB", (512, 512), "white")
    draw = ImageDraw.Draw(color)
    draw.ellipse((96, 96, 416, 416), fill=fill, outline="black", width=6)
    draw.rectangle((196, 196, 316, 316), fill=(255, 255, 255), outline="black", width=6)
    draw.text((20, 20), name, fill="black")

    outline = ImageOps.grayscale(color).point(lambda p: 0 if p < 60 else 255)
    return outline, color


def ensure_presets(storage) -> int:
    storage.presets_dir.mkdir(parents=True, exist_ok=True)
    created = 0
    for name in PRESET_NAMES:
        default_path = storage.presets_dir / f"{name}-default.png"
        color_path = storage.presets_dir / f"{name}-color.png"
        if default_path.exists() and color_path.exists():
            continue
        outline, color = draw_preset(name)
        outline.save(default_path)
        color.save(color_path)
        print(f"[ADD] preset {name}")
        created += 1
    return created


async def seed(email: str, credits: int):
    container = Container()
    settings = container.settings()
    storage = container.storage()

    init_db(container.engine())
    storage.ensure_dirs()
    created = ensure_presets(storage)
    print(f"Presets ready in {storage.presets_dir} ({created} created)")

    accounts = container.account_service()
    try:
        account = await accounts.create_account(email, display_name="Demo", initial_credits=credits)
        print(f"[ADD] account #{account.id} {account.email} with {credits} credits")
    except InvalidInput:
        with session_scope(container.session_factory()) as session:
            account = await AccountRepository(session).get_by_email(email.strip().lower())
        print(f"[SKIP] {email} already exists (#{account.id}, {account.credits} credits)")

    token = create_access_token(
        account.id,
        settings.jwt_secret,
        settings.jwt_algorithm,
        settings.jwt_expires_minutes
    )
    print(f"\nBearer token:\n{token}")


if __name__ == "__main__":
    email = sys.argv[1] if len(sys.argv) > 1 else "demo@example.com"
    credits = int(sys.argv[2]) if len(sys.argv) > 2 else 100
    asyncio.run(seed(email, credits))
