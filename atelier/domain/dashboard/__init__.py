"""Dashboard domain - sales reports"""
