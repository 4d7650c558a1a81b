from aware_bundle.cli.bundle import main

raise SystemExit(main())
