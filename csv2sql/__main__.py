from csv2sql.cli import main

raise SystemExit(main())
