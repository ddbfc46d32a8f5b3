"""
ANNOTATE_MOVE_LIST.py: place analysis moments into a saved move-list markup file.
- Reads the move list (XML-compatible markup, e.g. a saved <div class="tview2"> fragment).
- Reads moments from a JSON file (raw model reply, envelope or bare list).
- Runs the presentation pass once (index → align → materialize) and writes the markup.
Usage: python scripts/annotate_move_list.py --tree moves.html --moments analysis.json [--out annotated.html]
"""
import argparse, json, logging, sys

from chess_commentary.extraction import parse_analysis
from chess_commentary.presenter import annotate_move_list
from chess_commentary.tree import MoveListTree


def main() -> int:
    ap = argparse.ArgumentParser(description="Annotate a move list with analysis moments")
    ap.add_argument("--tree", required=True, help="Path to the move list markup")
    ap.add_argument("--moments", required=True, help="Path to the analysis reply / moments JSON")
    ap.add_argument("--out", help="Output path (default: stdout)")
    ap.add_argument("--tolerance", type=int, default=None)
    ap.add_argument("--strict", action="store_true", help="Drop moments that only match by stated ply")
    ap.add_argument("--log-level", default="INFO")
    args = ap.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
                        format="%(asctime)s %(levelname)s %(name)s %(message)s")

    with open(args.tree, "r", encoding="utf-8") as f:
        tree = MoveListTree.from_markup(f.read())
    with open(args.moments, "r", encoding="utf-8") as f:
        raw = f.read()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        payload = raw
    parsed = parse_analysis(payload)

    outcome = annotate_move_list(
        tree,
        parsed.moments,
        tolerance=args.tolerance,
        allow_uncorroborated_fallback=False if args.strict else None,
    )
    if not outcome.ok:
        print(outcome.message, file=sys.stderr)
        return 1
    if outcome.alignment and outcome.alignment.unresolved:
        logging.info("%d moments left unplaced", len(outcome.alignment.unresolved))

    markup = tree.to_markup()
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(markup)
    else:
        print(markup)
    return 0


if __name__ == "__main__":
    sys.exit(main())
