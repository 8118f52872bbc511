from sitemirror.cli import main

raise SystemExit(main())
