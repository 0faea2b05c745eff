"""Project, scenario and result lifecycle service for supply-chain planning tools."""
