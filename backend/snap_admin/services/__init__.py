"""Authentication and authorization services"""
