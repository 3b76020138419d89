"""
Command-line export trigger.

Reads a members file (YAML or JSON), lays the members out in the chosen
template and writes the collage as a PNG.

Members file format:

    hero: alice            # optional, id of the member shown in the centre
    members:
      - id: alice
        name: Alice
        photo: photos/alice.jpg
      - id: bob
        name: Bob
        photo: https://example.com/bob.png

A bare list of members is accepted too. Relative photo paths are resolved
against the members file's directory.
"""

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml
from loguru import logger

from . import __version__, setup_logging
from .config import load_config
from .errors import CollageError, ValidationError
from .models import Member, TemplateKind
from .session import LayoutSession


def _resolve_photo(photo, base_dir: Path):
    if not isinstance(photo, str) or not photo:
        return photo or None
    if photo.startswith(('data:', 'http://', 'https://', 'file://')) or os.path.isabs(photo):
        return photo
    candidate = base_dir / photo
    return str(candidate) if candidate.exists() else photo


def load_members_file(path: str) -> Tuple[List[Member], Optional[str]]:
    """Parse a members file. Returns the members and the hero id, if any."""
    file_path = Path(path)
    if not file_path.exists():
        raise ValidationError(f"Members file not found: {path}",
                              suggestions=["Check the path of the members file"])

    with open(file_path, 'r', encoding='utf-8') as f:
        text = f.read()

    try:
        if file_path.suffix.lower() == '.json':
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValidationError(f"Could not parse members file {path}: {e}")

    hero_id = None
    if isinstance(data, dict):
        hero_id = data.get('hero')
        data = data.get('members', [])
    if not isinstance(data, list):
        raise ValidationError("Members file must contain a list of members",
                              details={'path': path})

    members = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ValidationError(f"Member #{i + 1} is not a mapping", details={'entry': entry})
        member_id = str(entry.get('id', i))
        members.append(Member(
            id=member_id,
            name=str(entry.get('name', member_id)),
            photo_ref=_resolve_photo(entry.get('photo') or entry.get('photo_ref'), file_path.parent),
        ))

    logger.info(f"Loaded {len(members)} members from {path}")
    return members, (str(hero_id) if hero_id is not None else None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='collage-export',
        description="Export a group collage as a print-ready PNG",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  collage-export members.yaml                          # square spiral, default output
  collage-export members.yaml --poster -o poster.png   # fixed 8.5x12.5in print poster
  collage-export members.json --template circle --grid-size large
        """
    )
    parser.add_argument('members', help='YAML or JSON file listing the members')
    parser.add_argument('--template', '-t', choices=[k.value for k in TemplateKind],
                        help='Template kind (default from config)')
    parser.add_argument('--output', '-o', default='collage.png',
                        help='Output file name (bare names go to the output folder)')
    parser.add_argument('--poster', action='store_true',
                        help='Use the fixed print poster for the square template')
    parser.add_argument('--hero', help='Member id to show in the centre cell')
    parser.add_argument('--grid-size', choices=['small', 'medium', 'large', 'xlarge'],
                        help='Cell size preset for ring templates')
    parser.add_argument('--no-optimize', action='store_true',
                        help='Skip the lossless optimization pass')
    parser.add_argument('--env', help='Configuration environment (settings_<env>.yaml)')
    parser.add_argument('--config-dir', default='config', help='Directory holding settings*.yaml')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = load_config(args.env, args.config_dir)
    if args.no_optimize:
        config = config.model_copy(update={'OPTIMIZE_ENABLED': False})
    setup_logging(config)

    try:
        members, hero_id = load_members_file(args.members)
        hero_id = args.hero or hero_id
        hero = None
        if hero_id is not None:
            by_id: Dict[str, Member] = {m.id: m for m in members}
            hero = by_id.get(hero_id)
            if hero is None:
                raise ValidationError(f"Hero '{hero_id}' is not one of the members")

        session = LayoutSession(
            members,
            template_kind=args.template,
            config=config,
            hero=hero,
            fixed_poster=args.poster,
            grid_size=args.grid_size,
        )
        result = session.export_sync(args.output)

    except CollageError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        for suggestion in e.suggestions:
            print(f"   - {suggestion}", file=sys.stderr)
        return 1

    opt = result.optimization
    print(f"✅ Exported {result.path}")
    print(f"   {result.width}x{result.height}px, {result.size_bytes:,} bytes")
    if opt.applied:
        print(f"   optimized {opt.original_size:,} -> {opt.optimized_size:,} bytes "
              f"({opt.saved_percent:.1f}% saved)")
    return 0


if __name__ == '__main__':
    sys.exit(main())
