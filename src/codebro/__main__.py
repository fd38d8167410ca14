from codebro.cli import main

raise SystemExit(main())
