from sqsd.cli import main

raise SystemExit(main())
