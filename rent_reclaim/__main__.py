from rent_reclaim.cli import main

raise SystemExit(main())
