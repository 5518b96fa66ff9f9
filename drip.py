import sys

from drip.drip_errors import DripError
from drip.drip_runtime import PipelineRunner
from drip.drip_serialize import load_file

USAGE = "usage: drip.py PIPELINE [DATA]\n\nRender a chain description (YAML/JSON) against an optional data file."


def main(argv=None) -> int:
    """Render a chain description file and print the output."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args or args[0] in ("-h", "--help"):
        print(USAGE)
        return 0 if args else 2

    runner = PipelineRunner()
    try:
        description = load_file(args[0])
        data = load_file(args[1]) if len(args) > 1 else {}
    except FileNotFoundError as e:
        print(f"Error: file not found: {e.filename}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: cannot read {e.filename}: {e.strerror}", file=sys.stderr)
        return 1
    except (UnicodeDecodeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        chain = runner.load(description)
    except (ValueError, DripError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if data is not None and not isinstance(data, dict):
        print("Error: data file must contain a mapping", file=sys.stderr)
        return 1

    result = runner.run(chain, data or {})
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        return 1
    print(result.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
