from hifz_tracker.app import main

main()
