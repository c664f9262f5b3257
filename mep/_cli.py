import sys


USAGE = """usage: mep [--version | --listen | demo]

  --version  print the version
  --listen   print the logs of mep processes running in another terminal
  demo       run a few example prompts
"""


def cli(argv=None):
    argv = sys.argv if argv is None else argv
    args = argv[1:]
    if "--version" in args or "version" in args:
        from . import __version__

        print("mep", __version__)
    elif "--listen" in args:
        from .utils import listen_to_logs

        listen_to_logs()
    elif "demo" in args:
        from ._main import main

        sys.exit(main())
    else:
        print(USAGE)
