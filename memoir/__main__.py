from memoir.cli import main

raise SystemExit(main())
