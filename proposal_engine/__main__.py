from proposal_engine.cli import main

raise SystemExit(main())
