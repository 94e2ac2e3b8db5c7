from seatmap.cli import main

raise SystemExit(main())
