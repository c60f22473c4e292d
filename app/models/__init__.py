"""Provider value objects and dashboard payload models"""
