"""Purchase state machine and the helpers it drives"""
