from patchsync.cli import main

main()
