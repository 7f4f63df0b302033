from lodstream.cli import main

raise SystemExit(main())
