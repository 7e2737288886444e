"""Protocol, enums and card types shared by the NuVerse server and its clients."""
